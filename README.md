# v2raykit

Turns a connection profile into a configuration file that a V2Ray-family
core can run. It also provides the helpers that go with that: plugin
settings, core and asset detection, run, test and version argument lists,
and traffic statistics polling.

It supports four core flavours (`CoreType`): `V2RAY`, `V2RAY5`, `V2RAY_GO`
and `V2RAY_RUST`. The first three take a JSON configuration. v2ray-rust
takes TOML.

## Installation

```
pip install v2raykit
```

## Modules

- `v2raykit.settings` contains `PluginSettings` together with `LogLevel`,
  `BrowserForwarderConfig` and `ObservatoryConfig`.
  - Each settings class has `to_json()` and `from_json()`.
  - The defaults are: log level `WARNING`, API enabled on port 15480,
    outbound mark 255, and browser forwarder port 18888.
- `v2raykit.profile` holds the profile model.
  - The model classes are `ProfileContent`, `InboundObject`,
    `OutboundObject`, `RuleObject`, `RoutingObject`, `PortRange` and
    `OutboundType`.
  - `ProfileContent.find_outbound()` returns the outbound with a given name.
  - `merge_json()` merges one dict into another recursively.
- `v2raykit.plugin` gives, for each `CoreType`, the plugin metadata
  (`plugin_metadata()`), the kernel identifier (`kernel_id()`) and the
  kernel factories (`kernel_factories()`). The factories list the protocols
  that kernel supports.
- `v2raykit.jsongen` builds configurations for the JSON-based cores.
  - `JsonProfileGenerator.generate()` and `generate_configuration()` return
    the configuration as a dict.
  - `generate_configuration_text()` returns it as indented JSON text with
    sorted keys.
- `v2raykit.rustgen` builds configurations for v2ray-rust.
  - `RustProfileGenerator.generate()` returns the TOML table as a dict and
    fills `tag_protocols`.
  - `generate_configuration()` returns a pair: the TOML text and the map
    from outbound tag to protocol.
  - Each protocol, TLS and websocket entry gets a random tag from
    `random_tag()`.
  - Balancers are skipped.
- `v2raykit.stats` contains `StatsPoller`, `Statistics`, `StatisticsType`
  and `classify_tags()`.
  - `StatsPoller` runs a background thread. While it is polling, it calls a
    fetch function that you supply for every uplink and downlink counter.
  - It adds up the proxy and direct traffic and passes each `Statistics` to
    `on_data`.
  - After 30 failed rounds in a row it reports one error to `on_error` and
    stops asking.
  - It works as a context manager. `close()` waits for the thread to end.
- `v2raykit.detect` checks an installation and searches for the core.
  - `check_installation()` checks that the core file and its asset files
    (`geoip.dat`, `geosite.dat`) exist. It raises `ValidationError` when
    something is missing.
  - `has_assets()` tells whether a directory holds both asset files.
  - `search_paths()` lists the directories to search: `PATH`, the home
    directory, common install locations and the configured assets path.
  - `detect_core()` looks for the `v2ray` executable and the asset files in
    those directories. It returns a `DetectionResult`, whose `messages()`
    describe what was found.
  - `first_output_line()` returns the first line of a core's version
    output.
- `v2raykit.kernel` contains `KernelSetup`, `rust_log_filter()`,
  `extract_test_error()` and `KernelError`.
  - `KernelSetup.prepare_configuration()` writes `config.json` into the
    working directory.
  - `run_arguments()`, `test_arguments()` and `version_arguments()` return
    the command-line arguments for each core flavour.
  - `environment()` sets `v2ray.location.asset`. For v2ray-rust it also sets
    `RUST_LOG`.
  - `api_decision()` tells whether the stats API should be started. It
    checks the `V2RAYPLUGIN_NO_API` variable, the settings and the outbound
    tags.
  - `rust_log_filter()` returns the `RUST_LOG` filter for a log level.
  - `extract_test_error()` pulls the error message out of a failed
    configuration test's output.

## Example

```python
from v2raykit.jsongen import generate_configuration_text
from v2raykit.profile import OutboundObject, PortRange, ProfileContent
from v2raykit.settings import PluginSettings

settings = PluginSettings()
profile = ProfileContent(
    outbounds=[
        OutboundObject(
            name="proxy",
            protocol="shadowsocks",
            address="proxy.example.com",
            port=PortRange(8388),
            protocol_settings={"method": "aes-256-gcm", "password": "password"},
        )
    ]
)
print(generate_configuration_text(profile, settings))
```

The API is enabled by default, so the generated configuration includes the
following:

- a `qv2ray-api-in` dokodemo-door inbound on `127.0.0.1`, listening on
  `settings.api_port`;
- a routing rule that sends that inbound to the `qv2ray-api` tag;
- `stats`, `policy` and `api` sections.

Every outbound gets `streamSettings.sockopt.mark` set to
`settings.outbound_mark`.

To prepare a run of the v2ray-rust core:

```python
from v2raykit.kernel import KernelSetup
from v2raykit.plugin import CoreType

setup = KernelSetup(CoreType.V2RAY_RUST, settings, working_dir="run")
setup.prepare_configuration(profile)
args = setup.run_arguments()      # ["--config", "run/config.json"]
env = setup.environment()
enabled, reason = setup.api_decision()
```

## What it does not do

- It never starts, tests or stops a core process. `KernelSetup` only
  supplies the argument lists and the environment. The calling application
  launches the core and passes its output to `first_output_line()` or
  `extract_test_error()`.
- It contains no client for the core's stats service. `StatsPoller` calls
  the fetch function you give it.
- It has no graphical interface and no command-line program.