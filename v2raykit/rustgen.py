"""TOML configuration generator for the v2ray-rust core."""

from __future__ import annotations

import logging
import posixpath
import secrets
import string
from collections.abc import Mapping
from typing import Any

import tomli_w

from .profile import InboundObject, OutboundObject, OutboundType, ProfileContent, RuleObject
from .settings import PluginSettings

log = logging.getLogger(__name__)

RANDOM_TAG_LENGTH = 12
RANDOM_TAG_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
API_LISTEN_ADDRESS = "127.0.0.1"
DEFAULT_EARLY_DATA_HEADER = "Sec-WebSocket-Protocol"

# Section name in the output table for each list the generator collects.
_SECTIONS = (
    ("trojan", "trojan"),
    ("ss", "shadowsocks"),
    ("vmess", "vmess"),
    ("tls", "tls"),
    ("ws", "websocket"),
    ("direct", "direct"),
    ("blackhole", "blackhole"),
    ("outbounds", "outbounds"),
    ("inbounds", "inbounds"),
    ("domain_routing_rules", "domain_routing_rules"),
    ("ip_routing_rules", "ip_routing_rules"),
    ("geosite_rules", "geosite_rules"),
    ("geoip_rules", "geoip_rules"),
)


def random_tag() -> str:
    """Return a random alphanumeric tag of twelve characters."""
    return "".join(secrets.choice(RANDOM_TAG_ALPHABET) for _ in range(RANDOM_TAG_LENGTH))


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _address(host: str, port: int) -> str:
    return f"{host}:{port}"


def _external_file(entry: str, prefix_length: int) -> str:
    """Return the file name of an ``ext:file:list`` style entry."""
    last = entry.rfind(":")
    if last < prefix_length - 1:
        return entry[prefix_length:]
    if last == prefix_length - 1:
        return entry[prefix_length:]
    return entry[prefix_length:last]


class RustProfileGenerator:
    """Builds the TOML configuration of the v2ray-rust core from a profile."""

    def __init__(self, profile: ProfileContent, settings: PluginSettings | None = None) -> None:
        self.profile = profile
        self.settings = settings if settings is not None else PluginSettings()
        self.tag_protocols: dict[str, str] = {}
        self._reset()

    def _reset(self) -> None:
        self.tag_protocols = {}
        self._lists: dict[str, list[dict[str, Any]]] = {attr: [] for _, attr in _SECTIONS}

    def generate(self) -> dict[str, Any]:
        """Return the configuration table; ``tag_protocols`` is filled as a side result."""
        self._reset()
        profile, settings = self.profile, self.settings

        for inbound in profile.inbounds:
            self._process_inbound(inbound)

        for outbound in profile.outbounds:
            if outbound.object_type is OutboundType.ORIGINAL:
                self._process_outbound(outbound)
            # Balancers are not supported by this core.

        for rule in profile.routing.rules:
            self._process_rule(rule)

        root: dict[str, Any] = {}
        for section, attr in _SECTIONS:
            entries = self._lists[attr]
            if entries:
                root[section] = entries

        if settings.api_enabled:
            root["enable_api_server"] = True
            root["api_server_addr"] = _address(API_LISTEN_ADDRESS, settings.api_port)

        log.debug("v2ray-rust root table: %s", root)
        return root

    def _add_tag_protocol(self, tag: str, protocol: str) -> None:
        if not tag:
            log.info("Ignored outbound with empty tag.")
        else:
            self.tag_protocols[tag] = protocol

    def _asset_file(self, name: str) -> str:
        return posixpath.join(self.settings.assets_path, name)

    def _external_rule(self, entry: str, prefix_length: int, tag: str) -> dict[str, Any]:
        return {
            "file_path": self._asset_file(_external_file(entry, prefix_length)),
            "tag": tag,
            "rules": [entry],
        }

    def _process_rule(self, rule: RuleObject) -> None:
        target = self.profile.find_outbound(rule.outbound_tag)
        if target.object_type is not OutboundType.ORIGINAL:
            return
        tag = rule.outbound_tag
        geoip_rules = self._lists["geoip_rules"]
        geosite_rules = self._lists["geosite_rules"]

        geoip_names: list[str] = []
        cidr: list[str] = []
        for ip in rule.target_ips:
            if ip.startswith("geoip:"):
                geoip_names.append(ip[6:])
            elif ip.startswith("ext:") and len(ip) > 4:
                geoip_rules.append(self._external_rule(ip, 4, tag))
            elif ip.startswith("ext-ip:") and len(ip) > 7:
                geoip_rules.append(self._external_rule(ip, 7, tag))
            else:
                cidr.append(ip)

        if geoip_names:
            geoip_rules.append({"tag": tag, "rules": geoip_names})
        if cidr:
            self._lists["ip_routing_rules"].append({"tag": tag, "cidr_rules": cidr})

        full_rules: list[str] = []
        domain_rules: list[str] = []
        regex_rules: list[str] = []
        substr_rules: list[str] = []
        geosite_names: list[str] = []
        for domain in rule.target_domains:
            if domain.startswith("geosite:"):
                geosite_names.append(domain[8:])
            elif domain.startswith("ext:") and len(domain) > 4:
                geosite_rules.append(self._external_rule(domain, 4, tag))
            elif domain.startswith("full:") and len(domain) > 5:
                full_rules.append(domain[5:])
            elif domain.startswith("domain:") and len(domain) > 7:
                domain_rules.append(domain[7:])
            elif domain.startswith("regexp:") and len(domain) > 7:
                regex_rules.append(domain[7:])
            else:
                substr_rules.append(domain)

        if geosite_names:
            geosite_rules.append({"tag": tag, "rules": geosite_names})

        # A domain rule set is only written when every kind of matcher is present.
        if full_rules and substr_rules and regex_rules and domain_rules:
            self._lists["domain_routing_rules"].append(
                {
                    "tag": tag,
                    "full_rules": full_rules,
                    "domain_rules": domain_rules,
                    "regex_rules": regex_rules,
                    "substr_rules": substr_rules,
                }
            )

    def _process_inbound(self, inbound: InboundObject) -> None:
        addr = _address(inbound.address, inbound.port.start)
        if inbound.protocol in ("http", "socks"):
            entry: dict[str, Any] = {"tag": inbound.name, "addr": addr}
            nested = _mapping(inbound.protocol_settings.get("settings"))
            if "udp" in nested:
                entry["enable_udp"] = True
            self._lists["inbounds"].append(entry)

        if inbound.protocol == "dokodemo-door":
            sockopt = inbound.stream_settings.get("sockopt")
            if isinstance(sockopt, Mapping) and "tproxy" in sockopt:
                self._lists["inbounds"].append({"tag": inbound.name, "addr": addr, "tporxy": True})

    def _process_outbound(self, outbound: OutboundObject) -> None:
        if outbound.object_type is not OutboundType.ORIGINAL:
            raise ValueError(f"outbound {outbound.name!r} is not an original outbound")

        settings = outbound.protocol_settings
        stream = outbound.stream_settings
        addr = _address(outbound.address, outbound.port.start)
        protocol = outbound.protocol

        protocol_tag = ""
        tls_tag = ""
        websocket_tag = ""
        h2_tag = ""

        if protocol == "freedom":
            self._add_tag_protocol(outbound.name, "freedom")
            protocol_tag = random_tag()
            self._lists["direct"].append({"tag": protocol_tag})

        if protocol == "blackhole":
            protocol_tag = random_tag()
            self._lists["blackhole"].append({"tag": protocol_tag})

        if protocol == "trojan":
            self._add_tag_protocol(outbound.name, "trojan")
            protocol_tag = random_tag()
            self._lists["trojan"].append(
                {"tag": protocol_tag, "addr": addr, "password": _text(settings.get("password"))}
            )

        if protocol == "vmess":
            self._add_tag_protocol(outbound.name, "vmess")
            protocol_tag = random_tag()
            self._lists["vmess"].append(
                {
                    "tag": protocol_tag,
                    "addr": addr,
                    "method": _text(settings.get("security")),
                    "uuid": _text(settings.get("id")),
                }
            )

        if protocol == "shadowsocks":
            self._add_tag_protocol(outbound.name, "shadowsocks")
            protocol_tag = random_tag()
            self._lists["shadowsocks"].append(
                {
                    "tag": protocol_tag,
                    "addr": addr,
                    "method": _text(settings.get("method")),
                    "password": _text(settings.get("password")),
                }
            )

        if _text(stream.get("security")) == "tls":
            tls_tag = random_tag()
            server_name = _text(_mapping(stream.get("tlsSettings")).get("serverName"))
            self._lists["tls"].append({"tag": tls_tag, "sni": server_name or outbound.address})

        network = _text(stream.get("network"))
        if network == "h2":
            # The h2 transport is named in the chain but has no section of its own.
            h2_tag = random_tag()

        if network == "ws":
            websocket_tag = random_tag()
            ws = _mapping(stream.get("wsSettings"))
            entry: dict[str, Any] = {
                "tag": websocket_tag,
                "uri": f"ws://{addr}{_text(ws.get('path'))}",
            }
            headers = _mapping(ws.get("headers"))
            if headers:
                entry["headers"] = {str(key): str(value) for key, value in headers.items()}
            max_early_data = _int(ws.get("maxEarlyData"))
            if max_early_data > 0:
                entry["max_early_data"] = max_early_data
                entry["early_data_header_name"] = (
                    _text(ws.get("earlyDataHeaderName")) or DEFAULT_EARLY_DATA_HEADER
                )
            self._lists["websocket"].append(entry)

        if protocol_tag:
            chain = [tag for tag in (tls_tag, h2_tag, websocket_tag, protocol_tag) if tag]
            self._lists["outbounds"].append({"tag": outbound.name, "chain": chain})


def generate_configuration(
    profile: ProfileContent, settings: PluginSettings | None = None
) -> tuple[str, dict[str, str]]:
    """Return the TOML text for ``profile`` and the outbound tag to protocol map."""
    generator = RustProfileGenerator(profile, settings)
    table = generator.generate()
    return tomli_w.dumps(table), generator.tag_protocols