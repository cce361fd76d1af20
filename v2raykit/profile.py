"""Profile model consumed by the configuration generators."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def merge_json(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` recursively and return ``target``.

    Nested objects are merged key by key; any other value replaces what
    ``target`` held.
    """
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            merge_json(existing, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


@dataclass(frozen=True)
class PortRange:
    """An inclusive range of ports; 0 means unset."""

    start: int = 0
    end: int = 0

    def __post_init__(self) -> None:
        if self.end == 0 and self.start != 0:
            object.__setattr__(self, "end", self.start)

    @property
    def is_set(self) -> bool:
        return self.start != 0 and self.end != 0

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


class OutboundType(Enum):
    """Whether an outbound is a real outbound or a balancer."""

    ORIGINAL = "original"
    BALANCER = "balancer"


@dataclass
class InboundObject:
    """An inbound listener."""

    name: str = ""
    protocol: str = ""
    address: str = ""
    port: PortRange = field(default_factory=PortRange)
    protocol_settings: dict[str, Any] = field(default_factory=dict)
    stream_settings: dict[str, Any] = field(default_factory=dict)
    mux_settings: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def mux_enabled(self) -> bool:
        return bool(self.mux_settings.get("enabled", False))


@dataclass
class OutboundObject:
    """An outbound connection or a balancer over outbounds."""

    name: str = ""
    object_type: OutboundType = OutboundType.ORIGINAL
    protocol: str = ""
    address: str = ""
    port: PortRange = field(default_factory=PortRange)
    protocol_settings: dict[str, Any] = field(default_factory=dict)
    stream_settings: dict[str, Any] = field(default_factory=dict)
    mux_settings: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)
    balancer_selector: list[str] = field(default_factory=list)
    balancer_strategy: str = ""

    @property
    def mux_enabled(self) -> bool:
        return bool(self.mux_settings.get("enabled", False))


@dataclass
class RuleObject:
    """A routing rule sending matched traffic to an outbound tag."""

    outbound_tag: str = ""
    target_domains: list[str] = field(default_factory=list)
    target_ips: list[str] = field(default_factory=list)
    target_port: PortRange = field(default_factory=PortRange)
    source_port: PortRange = field(default_factory=PortRange)
    networks: list[str] = field(default_factory=list)
    source_addresses: list[str] = field(default_factory=list)
    inbound_tags: list[str] = field(default_factory=list)
    protocols: list[str] = field(default_factory=list)
    extra_settings: dict[str, Any] = field(default_factory=dict)


@dataclass
class RoutingObject:
    """Routing rules together with DNS and routing options."""

    rules: list[RuleObject] = field(default_factory=list)
    extra_options: dict[str, Any] = field(default_factory=dict)
    dns: dict[str, Any] = field(default_factory=dict)
    fakedns: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProfileContent:
    """A complete profile: inbounds, outbounds, routing and extra options."""

    inbounds: list[InboundObject] = field(default_factory=list)
    outbounds: list[OutboundObject] = field(default_factory=list)
    routing: RoutingObject = field(default_factory=RoutingObject)
    extra_options: dict[str, Any] = field(default_factory=dict)

    def find_outbound(self, name: str) -> OutboundObject:
        """Return the first outbound named ``name``, or an empty outbound."""
        return next((out for out in self.outbounds if out.name == name), OutboundObject())