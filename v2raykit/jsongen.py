"""JSON configuration generator for the V2Ray, V2Ray v5 and V2Ray-Go cores."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from typing import Any

from .profile import InboundObject, OutboundObject, OutboundType, ProfileContent, RuleObject, merge_json
from .settings import PluginSettings

DEFAULT_API_TAG = "qv2ray-api"
DEFAULT_API_IN_TAG = "qv2ray-api-in"
API_LISTEN_ADDRESS = "127.0.0.1"
API_SERVICES = ("ReflectionService", "HandlerService", "LoggerService", "StatsService")


def _nonempty_dict(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value)


def _nonempty_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _apply_outbound_mark(root: dict[str, Any], mark: int) -> None:
    for outbound in root.get("outbounds", []):
        stream = outbound.get("streamSettings")
        if not isinstance(stream, dict):
            stream = outbound["streamSettings"] = {}
        sockopt = stream.get("sockopt")
        if not isinstance(sockopt, dict):
            sockopt = stream["sockopt"] = {}
        sockopt["mark"] = mark


class JsonProfileGenerator:
    """Builds the JSON configuration of a core from a profile and plugin settings."""

    def __init__(self, profile: ProfileContent, settings: PluginSettings | None = None) -> None:
        self.profile = profile
        self.settings = settings if settings is not None else PluginSettings()
        self._inbounds: list[dict[str, Any]] = []
        self._outbounds: list[dict[str, Any]] = []
        self._rules: list[dict[str, Any]] = []
        self._balancers: list[dict[str, Any]] = []

    def generate(self) -> dict[str, Any]:
        """Return the complete configuration as a JSON-compatible dict."""
        self._inbounds, self._outbounds, self._rules, self._balancers = [], [], [], []
        profile, settings = self.profile, self.settings

        root: dict[str, Any] = merge_json({}, profile.extra_options)

        for inbound in profile.inbounds:
            self._process_inbound(inbound)

        for outbound in profile.outbounds:
            if outbound.object_type is OutboundType.ORIGINAL:
                self._process_outbound(outbound)
            elif outbound.object_type is OutboundType.BALANCER:
                self._process_balancer(outbound)

        for rule in profile.routing.rules:
            self._process_rule(rule)

        routing: dict[str, Any] = {}
        for key in ("domainStrategy", "domainMatcher"):
            value = _text(profile.routing.extra_options.get(key))
            if value:
                routing[key] = value

        root["log"] = {"loglevel": settings.log_level.config_name}

        if not _nonempty_dict(root.get("browserForwarder")) and settings.browser_forwarder.listen_addr:
            root["browserForwarder"] = settings.browser_forwarder.to_json()

        if not _nonempty_dict(root.get("observatory")):
            root["observatory"] = settings.observatory.to_json()
        if not _nonempty_list(root["observatory"].get("subjectSelector")):
            del root["observatory"]

        if settings.api_enabled:
            root["stats"] = {}
            root["policy"] = {
                "system": {
                    "statsInboundUplink": True,
                    "statsInboundDownlink": True,
                    "statsOutboundUplink": True,
                    "statsOutboundDownlink": True,
                }
            }
            self._inbounds.insert(
                0,
                {
                    "tag": DEFAULT_API_IN_TAG,
                    "listen": API_LISTEN_ADDRESS,
                    "port": settings.api_port,
                    "protocol": "dokodemo-door",
                    "settings": {"address": API_LISTEN_ADDRESS},
                },
            )
            self._rules.insert(
                0,
                {"type": "field", "outboundTag": DEFAULT_API_TAG, "inboundTag": [DEFAULT_API_IN_TAG]},
            )
            root["api"] = {"tag": DEFAULT_API_TAG, "services": list(API_SERVICES)}

        if self._rules:
            routing["rules"] = self._rules
        if self._balancers:
            routing["balancers"] = self._balancers

        root["routing"] = routing
        root["inbounds"] = self._inbounds
        root["outbounds"] = self._outbounds

        if profile.routing.dns:
            root["dns"] = copy.deepcopy(profile.routing.dns)

        pools = profile.routing.fakedns.get("pools")
        if _nonempty_list(pools):
            root["fakedns"] = copy.deepcopy(pools)

        _apply_outbound_mark(root, settings.outbound_mark)
        return root

    def _process_rule(self, rule: RuleObject) -> None:
        result: dict[str, Any] = {"type": "field"}
        if rule.target_domains:
            result["domains"] = list(rule.target_domains)
        if rule.target_ips:
            result["ip"] = list(rule.target_ips)
        if rule.target_port.is_set:
            result["port"] = str(rule.target_port)
        if rule.source_port.is_set:
            result["sourcePort"] = str(rule.source_port)
        if rule.networks:
            result["network"] = ",".join(rule.networks)
        if rule.source_addresses:
            result["source"] = list(rule.source_addresses)
        if rule.inbound_tags:
            result["inboundTag"] = list(rule.inbound_tags)
        if rule.protocols:
            result["protocol"] = list(rule.protocols)
        if "user" in rule.extra_settings:
            result["user"] = copy.deepcopy(rule.extra_settings["user"])

        target = self.profile.find_outbound(rule.outbound_tag)
        key = "outboundTag" if target.object_type is OutboundType.ORIGINAL else "balancerTag"
        result[key] = rule.outbound_tag
        self._rules.append(result)

    def _process_inbound(self, inbound: InboundObject) -> None:
        root: dict[str, Any] = {
            "tag": inbound.name,
            "listen": inbound.address,
            "port": inbound.port.start,
            "streamSettings": copy.deepcopy(inbound.stream_settings),
            "protocol": inbound.protocol,
            "settings": copy.deepcopy(inbound.protocol_settings),
        }
        if inbound.mux_enabled:
            root["mux"] = copy.deepcopy(inbound.mux_settings)

        if inbound.protocol in ("http", "socks"):
            root["settings"].pop("user", None)
            root["settings"].pop("pass", None)

        if inbound.protocol == "dokodemo-door":
            root["settings"]["allowTransparent"] = True

        merge_json(root, inbound.options)
        self._inbounds.append(root)

    def _process_outbound(self, outbound: OutboundObject) -> None:
        if outbound.object_type is not OutboundType.ORIGINAL:
            raise ValueError(f"outbound {outbound.name!r} is not an original outbound")

        settings = outbound.protocol_settings
        root: dict[str, Any] = {
            "tag": outbound.name,
            "protocol": outbound.protocol,
            "settings": copy.deepcopy(settings),
            "streamSettings": copy.deepcopy(outbound.stream_settings),
        }
        if outbound.mux_enabled:
            root["mux"] = copy.deepcopy(outbound.mux_settings)

        address, port = outbound.address, outbound.port.start
        protocol = outbound.protocol

        if protocol == "trojan":
            server = {"password": _text(settings.get("password")), "address": address, "port": port}
            root["settings"] = {"servers": [server]}

        if protocol in ("http", "socks"):
            server: dict[str, Any] = {"address": address, "port": port}
            user, secret = _text(settings.get("user")), _text(settings.get("pass"))
            if user or secret:
                server["users"] = [{"user": user, "pass": secret}]
            root["settings"] = {"servers": [server]}

        if protocol == "vmess":
            user_entry = {
                "id": _text(settings.get("id")),
                "security": _text(settings.get("security")),
                "experiments": _text(settings.get("experiments")),
            }
            root["settings"] = {"vnext": [{"address": address, "port": port, "users": [user_entry]}]}

        if protocol == "shadowsocks":
            server = {
                "method": _text(settings.get("method")),
                "password": _text(settings.get("password")),
                "address": address,
                "port": port,
            }
            root["settings"] = {"servers": [server]}

        merge_json(root, outbound.options)
        self._outbounds.append(root)

    def _process_balancer(self, outbound: OutboundObject) -> None:
        if outbound.object_type is not OutboundType.BALANCER:
            raise ValueError(f"outbound {outbound.name!r} is not a balancer")
        self._balancers.append(
            {
                "tag": outbound.name,
                "selector": list(outbound.balancer_selector),
                "strategy": {"type": outbound.balancer_strategy},
            }
        )


def generate_configuration(profile: ProfileContent, settings: PluginSettings | None = None) -> dict[str, Any]:
    """Return the JSON configuration for ``profile`` as a dict."""
    return JsonProfileGenerator(profile, settings).generate()


def generate_configuration_text(profile: ProfileContent, settings: PluginSettings | None = None) -> str:
    """Return the JSON configuration for ``profile`` as indented text."""
    config = generate_configuration(profile, settings)
    return json.dumps(config, indent=4, sort_keys=True, ensure_ascii=False) + "\n"