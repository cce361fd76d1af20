[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "v2raykit"
version = "3.0.0"
description = "Build V2Ray, V2Ray v5, V2Ray-Go and v2ray-rust configurations from connection profiles, with helpers for core setup, detection and traffic statistics."
requires-python = ">=3.11"
keywords = ["v2ray", "proxy", "configuration", "toml", "json", "routing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Typing :: Typed",
]
dependencies = [
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["v2raykit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
