"""Preparation of a core run: configuration file, command lines and environment."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from . import jsongen, rustgen
from .plugin import CoreType
from .profile import ProfileContent
from .settings import LogLevel, PluginSettings

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
NO_API_ENV = "V2RAYPLUGIN_NO_API"
ASSET_LOCATION_ENV = "v2ray.location.asset"
RUST_LOG_ENV = "RUST_LOG"
_ERROR_MARKER = "anti-censorship."

_RUST_LOG_FILTERS = {
    LogLevel.NONE: "off",
    LogLevel.ERROR: "info,v2ray_rust=error",
    LogLevel.WARNING: "info,v2ray_rust=warn",
    LogLevel.INFO: "info",
    LogLevel.DEBUG: "info,v2ray_rust=debug",
}

_CRASH_MESSAGES = {
    CoreType.V2RAY: "V2Ray kernel crashed.",
    CoreType.V2RAY5: "V2Ray kernel crashed.",
    CoreType.V2RAY_GO: "V2Ray Go crashed.",
    CoreType.V2RAY_RUST: "v2ray-rust kernel crashed.",
}


class KernelError(Exception):
    """The kernel cannot be set up as requested."""


def rust_log_filter(level: LogLevel | int) -> str:
    """Return the RUST_LOG filter used for ``level``."""
    try:
        return _RUST_LOG_FILTERS[LogLevel(level)]
    except ValueError:
        return _RUST_LOG_FILTERS[LogLevel.WARNING]


def extract_test_error(output: str) -> str:
    """Return the part of a failed config test's output that describes the error."""
    start = output.find(_ERROR_MARKER) + len(_ERROR_MARKER) + 1
    return output[start:].replace(">", "\n >")


class KernelSetup:
    """Writes the configuration of one core and describes how to run it."""

    def __init__(
        self,
        core_type: CoreType | int,
        settings: PluginSettings | None = None,
        working_dir: str | os.PathLike[str] = ".",
    ) -> None:
        self.core_type = CoreType(core_type)
        self.settings = settings if settings is not None else PluginSettings()
        self.working_dir = Path(working_dir)
        self.config_path: Path | None = None
        self.tag_protocols: dict[str, str] = {}

    def prepare_configuration(self, profile: ProfileContent) -> Path:
        """Write the configuration for ``profile`` and return the file's path."""
        self.working_dir.mkdir(parents=True, exist_ok=True)
        path = self.working_dir / CONFIG_FILE_NAME

        if self.core_type is CoreType.V2RAY_RUST:
            text, tag_protocols = rustgen.generate_configuration(profile, self.settings)
        else:
            text = jsongen.generate_configuration_text(profile, self.settings)
            tag_protocols = {}
            for item in json.loads(text).get("outbounds", []):
                tag = item.get("tag") if isinstance(item, dict) else None
                if not isinstance(tag, str) or not tag:
                    log.info("Ignored outbound with empty tag.")
                    continue
                protocol = item.get("protocol")
                tag_protocols[tag] = protocol if isinstance(protocol, str) else ""

        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise KernelError(f"cannot write configuration file {path}: {exc}") from exc

        self.config_path = path
        self.tag_protocols = tag_protocols
        return path

    def _config(self) -> str:
        if self.config_path is None:
            raise KernelError("configuration has not been prepared")
        return str(self.config_path)

    def run_arguments(self) -> list[str]:
        """Return the arguments that start the core with the prepared configuration."""
        path = self._config()
        if self.core_type is CoreType.V2RAY5:
            return ["run", "-c", path]
        if self.core_type is CoreType.V2RAY_RUST:
            return ["--config", path]
        return ["-config", path]

    def test_arguments(self) -> list[str]:
        """Return the arguments that make the core only check the configuration."""
        path = self._config()
        if self.core_type is CoreType.V2RAY5:
            return ["test", "-config", path]
        if self.core_type is CoreType.V2RAY_RUST:
            return ["--test", "--config", path]
        return ["-test", "-config", path]

    def version_arguments(self) -> list[str]:
        """Return the arguments that make the core print its version."""
        if self.core_type is CoreType.V2RAY5:
            return ["version"]
        if self.core_type is CoreType.V2RAY_RUST:
            return ["--help"]
        return ["--version"]

    def environment(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return the environment the core runs in, built on ``base``."""
        env = dict(os.environ if base is None else base)
        env[ASSET_LOCATION_ENV] = self.settings.assets_path
        if self.core_type is CoreType.V2RAY_RUST:
            env[RUST_LOG_ENV] = rust_log_filter(self.settings.log_level)
        return env

    def crash_message(self) -> str:
        """Return the message reported when the core stops on its own."""
        return _CRASH_MESSAGES[self.core_type]

    def api_decision(self, environ: Mapping[str, str] | None = None) -> tuple[bool, str]:
        """Tell whether the stats API is to be started, and why."""
        env = os.environ if environ is None else environ
        if NO_API_ENV in env:
            reason = "API has been disabled by the command line arguments"
            enabled = False
        elif not self.settings.api_enabled:
            reason = "API has been disabled by the global config option"
            enabled = False
        elif not self.tag_protocols:
            reason = (
                "RARE: API is disabled since no inbound tags configured. "
                "This is usually caused by a bad complex config."
            )
            enabled = False
        else:
            reason = "Starting API"
            enabled = True
        log.info(reason)
        return enabled, reason