"""Checks of a core installation and a search for the core and its assets."""

from __future__ import annotations

import os
import shutil
import string
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .settings import PluginSettings

CORE_NAME = "v2ray"
GEOIP_FILE = "geoip.dat"
GEOSITE_FILE = "geosite.dat"
_DIR_NAMES = ("v2ray", "v2ray-core", "v2ray-windows-64")
_UNIX_PATHS = (
    "/bin",
    "/usr/bin",
    "/usr/local/bin",
    "/usr/share/v2ray",
    "/usr/local/share/v2ray",
    "/usr/lib/v2ray",
    "/usr/local/lib/v2ray",
    "/opt/bin",
    "/opt/v2ray",
    "/usr/local/opt/bin",
    "/usr/local/opt/v2ray",
)


class ValidationError(Exception):
    """The core or its assets are not usable."""


def _entries(directory: str | os.PathLike[str]) -> set[str]:
    try:
        return set(os.listdir(directory))
    except OSError:
        return set()


def has_assets(directory: str | os.PathLike[str]) -> bool:
    """Tell whether ``directory`` holds both geoip.dat and geosite.dat."""
    entries = _entries(directory)
    return GEOIP_FILE in entries and GEOSITE_FILE in entries


def check_installation(core_path: str | os.PathLike[str], assets_path: str | os.PathLike[str]) -> Path:
    """Check that the core file and the asset files exist; return the core path."""
    core = Path(core_path)
    if not os.fspath(core_path) or not core.exists():
        raise ValidationError("V2Ray core executable not found.")
    try:
        with core.open("rb"):
            pass
    except OSError as exc:
        raise ValidationError(
            "V2Ray core file cannot be opened, please ensure there's a file instead of a folder."
        ) from exc

    entries = _entries(assets_path)
    has_geoip = GEOIP_FILE in entries
    has_geosite = GEOSITE_FILE in entries
    if not has_geoip and not has_geosite:
        raise ValidationError("V2Ray assets path is not valid.")
    if not has_geoip:
        raise ValidationError("No geoip.dat in assets path.")
    if not has_geosite:
        raise ValidationError("No geosite.dat in assets path.")
    return core


def first_output_line(output: str | bytes) -> str:
    """Return the first line of what the core printed for its version."""
    text = output.decode("utf-8", errors="replace") if isinstance(output, bytes) else output
    if not text:
        raise ValidationError("V2Ray core returns empty string.")
    return text.split("\n", 1)[0]


def _standard_locations(home: Path, platform: str) -> list[Path]:
    bases = [
        home / ".local" / "share",
        home / ".config",
        home / "Applications",
        home,
        home / "Desktop",
        home / "Documents",
        home / "Downloads",
    ]
    if platform == "win32":
        bases += [home / "AppData" / "Roaming", home / "AppData" / "Local"]
    elif platform == "darwin":
        bases.append(home / "Library" / "Application Support")
    return bases


def _dedupe(paths: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            result.append(path)
    return result


def search_paths(
    assets_path: str = "",
    env_path: str | None = None,
    home: str | os.PathLike[str] | None = None,
    platform: str | None = None,
) -> list[str]:
    """Return the directories searched for the core and its assets, in order."""
    platform = platform if platform is not None else sys.platform
    env_path = env_path if env_path is not None else os.environ.get("PATH", "")
    home_dir = Path(home) if home is not None else Path.home()
    splitter = ";" if platform == "win32" else ":"

    paths: list[str] = env_path.split(splitter)
    paths.append(str(home_dir))
    for base in _standard_locations(home_dir, platform):
        for name in _DIR_NAMES:
            candidate = base / name
            if candidate.is_dir():
                paths.append(str(candidate))

    if platform == "win32":
        paths = [p for p in paths if "shims" not in p]
        paths.append(f"{home_dir}/scoop/apps/v2ray/current/")
        paths.append(f"{home_dir}/source/repos/v2ray-core/")
        paths.append(f"{home_dir}/source/repos/v2ray/")
        for letter in string.ascii_uppercase:
            drive = f"{letter}:/"
            if os.path.exists(drive):
                paths.extend(drive + name for name in _DIR_NAMES)
    elif platform == "darwin" or platform.startswith("linux"):
        paths.extend(_UNIX_PATHS)

    paths.append(assets_path)
    return _dedupe(paths)


@dataclass(frozen=True)
class DetectionResult:
    """Where the core and its assets were found, or the previous values."""

    core_path: str
    assets_path: str
    core_found: bool
    assets_found: bool

    def messages(self) -> list[str]:
        """Return one line about the core and one about the assets."""
        return [
            f"Found v2ray core at: {self.core_path}" if self.core_found else "Cannot find v2ray core.",
            f"Found v2ray assets at: {self.assets_path}" if self.assets_found else "Cannot find v2ray assets.",
        ]


def detect_core(
    settings: PluginSettings,
    env_path: str | None = None,
    home: str | os.PathLike[str] | None = None,
    platform: str | None = None,
) -> DetectionResult:
    """Search the usual places for the core executable and the asset files."""
    paths = search_paths(settings.assets_path, env_path, home, platform)

    core_path, core_found = settings.core_path, False
    for directory in paths:
        found = shutil.which(CORE_NAME, path=directory)
        if found:
            core_path, core_found = found, True
            break

    assets_path, assets_found = settings.assets_path, False
    for directory in paths:
        if has_assets(directory):
            assets_path, assets_found = directory, True
            break

    return DetectionResult(core_path, assets_path, core_found, assets_found)