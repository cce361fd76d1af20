"""Plugin metadata and kernel factories for each supported core type."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class CoreType(IntEnum):
    """The flavours of core the plugin can drive."""

    V2RAY = 0x01
    V2RAY_GO = 0x02
    V2RAY5 = 0x03
    V2RAY_RUST = 0x04


@dataclass(frozen=True)
class PluginMetadata:
    """Descriptive data of a plugin build."""

    name: str
    plugin_id: str
    description: str
    update_location: str = ""
    components: tuple[str, ...] = ("kernel", "gui")


@dataclass(frozen=True)
class KernelFactory:
    """What a kernel is called and which protocols it handles."""

    kernel_id: str
    name: str
    capabilities: frozenset[str]
    supported_protocols: tuple[str, ...]


_FULL_PROTOCOLS = (
    "blackhole",
    "dns",
    "freedom",
    "http",
    "loopback",
    "shadowsocks",
    "socks",
    "trojan",
    "vmess",
)

_RUST_PROTOCOLS = ("blackhole", "freedom", "http", "shadowsocks", "socks", "trojan", "vmess")

_KERNEL_IDS = {
    CoreType.V2RAY: "v2ray_kernel",
    CoreType.V2RAY5: "v2ray5_kernel",
    CoreType.V2RAY_GO: "v2ray_go_kernel",
    CoreType.V2RAY_RUST: "v2ray_rust_kernel",
}

_KERNEL_NAMES = {
    CoreType.V2RAY: "V2Ray",
    CoreType.V2RAY5: "V2Ray v5",
    CoreType.V2RAY_GO: "V2Ray Go",
    CoreType.V2RAY_RUST: "V2Ray Rust",
}

_METADATA = {
    CoreType.V2RAY: PluginMetadata("V2Ray v4 Support", "builtin_v2ray_support", "V2Ray kernel support"),
    CoreType.V2RAY5: PluginMetadata("V2Ray v5 Support", "builtin_v2ray5_support", "V2Ray v5 kernel support"),
    CoreType.V2RAY_GO: PluginMetadata("V2Ray-Go Support", "builtin_v2raygo_support", "V2Ray-Go kernel support"),
    CoreType.V2RAY_RUST: PluginMetadata(
        "V2Ray-Rust Support", "builtin_v2rayrust_support", "V2Ray-Rust kernel support"
    ),
}


def plugin_metadata(core_type: CoreType | int) -> PluginMetadata:
    """Return the metadata of the plugin built for ``core_type``."""
    return _METADATA[CoreType(core_type)]


def kernel_id(core_type: CoreType | int) -> str:
    """Return the identifier of the kernel for ``core_type``."""
    return _KERNEL_IDS[CoreType(core_type)]


def kernel_factories(core_type: CoreType | int) -> list[KernelFactory]:
    """Return the kernels the plugin offers for ``core_type``."""
    core = CoreType(core_type)
    protocols = _RUST_PROTOCOLS if core is CoreType.V2RAY_RUST else _FULL_PROTOCOLS
    return [
        KernelFactory(
            kernel_id=_KERNEL_IDS[core],
            name=_KERNEL_NAMES[core],
            capabilities=frozenset({"router"}),
            supported_protocols=protocols,
        )
    ]