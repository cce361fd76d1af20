"""Settings of the V2Ray core plugin and their JSON form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

DEFAULT_CORE_PATH = ""
DEFAULT_ASSETS_PATH = ""


class LogLevel(IntEnum):
    """Log level handed to the core."""

    NONE = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4

    @property
    def config_name(self) -> str:
        """The level as it is written into a core configuration."""
        return self.name.lower()


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    return data


@dataclass
class BrowserForwarderConfig:
    """Browser forwarder listening address and port."""

    listen_addr: str = ""
    listen_port: int = 18888

    def to_json(self) -> dict[str, Any]:
        return {"listenAddr": self.listen_addr, "listenPort": self.listen_port}

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> BrowserForwarderConfig:
        data = _require_mapping(data)
        default = cls()
        return cls(
            listen_addr=str(data.get("listenAddr", default.listen_addr)),
            listen_port=int(data.get("listenPort", default.listen_port)),
        )


@dataclass
class ObservatoryConfig:
    """Outbound selectors watched by the observatory."""

    subject_selector: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"subjectSelector": list(self.subject_selector)}

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> ObservatoryConfig:
        data = _require_mapping(data)
        selectors = data.get("subjectSelector", [])
        if isinstance(selectors, str) or not isinstance(selectors, (list, tuple)):
            raise TypeError("subjectSelector must be a list of strings")
        return cls(subject_selector=[str(item) for item in selectors])


@dataclass
class PluginSettings:
    """All settings of the core plugin."""

    log_level: LogLevel = LogLevel.WARNING
    core_path: str = DEFAULT_CORE_PATH
    assets_path: str = DEFAULT_ASSETS_PATH
    outbound_mark: int = 255
    api_enabled: bool = True
    api_port: int = 15480
    browser_forwarder: BrowserForwarderConfig = field(default_factory=BrowserForwarderConfig)
    observatory: ObservatoryConfig = field(default_factory=ObservatoryConfig)

    def to_json(self) -> dict[str, Any]:
        return {
            "LogLevel": int(self.log_level),
            "CorePath": self.core_path,
            "AssetsPath": self.assets_path,
            "APIEnabled": self.api_enabled,
            "APIPort": self.api_port,
            "OutboundMark": self.outbound_mark,
            "BrowserForwarderSettings": self.browser_forwarder.to_json(),
            "ObservatorySettings": self.observatory.to_json(),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | None) -> PluginSettings:
        data = _require_mapping(data)
        default = cls()
        return cls(
            log_level=LogLevel(int(data.get("LogLevel", default.log_level))),
            core_path=str(data.get("CorePath", default.core_path)),
            assets_path=str(data.get("AssetsPath", default.assets_path)),
            outbound_mark=int(data.get("OutboundMark", default.outbound_mark)),
            api_enabled=bool(data.get("APIEnabled", default.api_enabled)),
            api_port=int(data.get("APIPort", default.api_port)),
            browser_forwarder=BrowserForwarderConfig.from_json(data.get("BrowserForwarderSettings")),
            observatory=ObservatoryConfig.from_json(data.get("ObservatorySettings")),
        )