import json
import tomllib

import pytest

from v2raykit.kernel import (
    ASSET_LOCATION_ENV,
    NO_API_ENV,
    RUST_LOG_ENV,
    KernelError,
    KernelSetup,
    extract_test_error,
    rust_log_filter,
)
from v2raykit.plugin import CoreType
from v2raykit.profile import OutboundObject, PortRange, ProfileContent
from v2raykit.settings import LogLevel, PluginSettings


def _profile(*names):
    outbounds = [
        OutboundObject(
            name=name,
            protocol="vmess",
            address="example.com",
            port=PortRange(443),
            protocol_settings={"id": "placeholder-id", "security": "auto"},
        )
        for name in names
    ]
    outbounds.append(OutboundObject(name="direct", protocol="freedom"))
    return ProfileContent(outbounds=outbounds)


@pytest.mark.parametrize(
    "level, expected",
    [
        (LogLevel.NONE, "off"),
        (LogLevel.ERROR, "info,v2ray_rust=error"),
        (LogLevel.WARNING, "info,v2ray_rust=warn"),
        (LogLevel.INFO, "info"),
        (LogLevel.DEBUG, "info,v2ray_rust=debug"),
    ],
)
def test_rust_log_filter(level, expected):
    assert rust_log_filter(level) == expected


def test_extract_test_error_after_marker():
    output = "V2Ray anti-censorship. failed > here"
    assert extract_test_error(output) == "failed \n > here"


def test_extract_test_error_without_marker():
    output = "0123456789abcdefghij>k"
    assert extract_test_error(output) == output[16:].replace(">", "\n >")
    assert extract_test_error("short") == ""


def test_prepare_json_configuration(tmp_path):
    setup = KernelSetup(CoreType.V2RAY, PluginSettings(), tmp_path)
    path = setup.prepare_configuration(_profile("proxy"))
    assert path == tmp_path / "config.json"
    config = json.loads(path.read_text(encoding="utf-8"))
    tags = [item["tag"] for item in config["outbounds"]]
    assert tags == ["proxy", "direct"]
    assert setup.tag_protocols == {"proxy": "vmess", "direct": "freedom"}


def test_prepare_ignores_empty_tags(tmp_path):
    setup = KernelSetup(CoreType.V2RAY_GO, PluginSettings(), tmp_path)
    setup.prepare_configuration(_profile("", "proxy"))
    assert setup.tag_protocols == {"proxy": "vmess", "direct": "freedom"}


def test_prepare_rust_configuration(tmp_path):
    setup = KernelSetup(CoreType.V2RAY_RUST, PluginSettings(), tmp_path)
    path = setup.prepare_configuration(_profile("proxy"))
    table = tomllib.loads(path.read_text(encoding="utf-8"))
    assert [item["tag"] for item in table["outbounds"]] == ["proxy", "direct"]
    assert setup.tag_protocols == {"proxy": "vmess", "direct": "freedom"}


def test_arguments_need_prepared_configuration(tmp_path):
    setup = KernelSetup(CoreType.V2RAY, PluginSettings(), tmp_path)
    with pytest.raises(KernelError):
        setup.run_arguments()
    with pytest.raises(KernelError):
        setup.test_arguments()


@pytest.mark.parametrize(
    "core, run, test, version",
    [
        (CoreType.V2RAY, ["-config"], ["-test", "-config"], ["--version"]),
        (CoreType.V2RAY_GO, ["-config"], ["-test", "-config"], ["--version"]),
        (CoreType.V2RAY5, ["run", "-c"], ["test", "-config"], ["version"]),
        (CoreType.V2RAY_RUST, ["--config"], ["--test", "--config"], ["--help"]),
    ],
)
def test_arguments_per_core(tmp_path, core, run, test, version):
    setup = KernelSetup(core, PluginSettings(), tmp_path)
    path = str(setup.prepare_configuration(_profile("proxy")))
    assert setup.run_arguments() == [*run, path]
    assert setup.test_arguments() == [*test, path]
    assert setup.version_arguments() == version


def test_environment_json_core(tmp_path):
    settings = PluginSettings(assets_path="/opt/assets")
    setup = KernelSetup(CoreType.V2RAY, settings, tmp_path)
    base = {"PATH": "/bin"}
    env = setup.environment(base)
    assert env == {"PATH": "/bin", ASSET_LOCATION_ENV: "/opt/assets"}
    assert base == {"PATH": "/bin"}


def test_environment_rust_core(tmp_path):
    settings = PluginSettings(assets_path="/opt/assets", log_level=LogLevel.DEBUG)
    setup = KernelSetup(CoreType.V2RAY_RUST, settings, tmp_path)
    env = setup.environment({})
    assert env[ASSET_LOCATION_ENV] == "/opt/assets"
    assert env[RUST_LOG_ENV] == "info,v2ray_rust=debug"


@pytest.mark.parametrize(
    "core, message",
    [
        (CoreType.V2RAY, "V2Ray kernel crashed."),
        (CoreType.V2RAY5, "V2Ray kernel crashed."),
        (CoreType.V2RAY_GO, "V2Ray Go crashed."),
        (CoreType.V2RAY_RUST, "v2ray-rust kernel crashed."),
    ],
)
def test_crash_message(tmp_path, core, message):
    assert KernelSetup(core, PluginSettings(), tmp_path).crash_message() == message


def test_api_disabled_by_environment(tmp_path):
    setup = KernelSetup(CoreType.V2RAY, PluginSettings(), tmp_path)
    setup.prepare_configuration(_profile("proxy"))
    enabled, reason = setup.api_decision({NO_API_ENV: "1"})
    assert enabled is False
    assert "command line" in reason


def test_api_disabled_by_settings(tmp_path):
    setup = KernelSetup(CoreType.V2RAY, PluginSettings(api_enabled=False), tmp_path)
    setup.prepare_configuration(_profile("proxy"))
    enabled, reason = setup.api_decision({})
    assert enabled is False
    assert "global config option" in reason


def test_api_disabled_without_tags(tmp_path):
    setup = KernelSetup(CoreType.V2RAY, PluginSettings(), tmp_path)
    enabled, reason = setup.api_decision({})
    assert enabled is False
    assert reason.startswith("RARE")


def test_api_enabled(tmp_path):
    setup = KernelSetup(CoreType.V2RAY5, PluginSettings(), tmp_path)
    setup.prepare_configuration(_profile("proxy"))
    assert setup.api_decision({}) == (True, "Starting API")