"""Configuration generators and setup, detection and statistics helpers for V2Ray-family cores."""

__version__ = "3.0.0"

__all__ = [
    "detect",
    "jsongen",
    "kernel",
    "plugin",
    "profile",
    "rustgen",
    "settings",
    "stats",
]