"""TOML config loading for sage.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "sage.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class CheckConfig:
    strict: bool = False
    warn_raw_lines: bool = True
    include: list[str] = field(default_factory=lambda: ["**/*.sage"])


@dataclass
class SageConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    check: CheckConfig = field(default_factory=CheckConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find sage.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> SageConfig:
    """Parse a sage.toml file into a SageConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = SageConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "check" in data:
        chk = data["check"]
        config.check = CheckConfig(
            strict=chk.get("strict", False),
            warn_raw_lines=chk.get("warn_raw_lines", True),
            include=list(chk.get("include", ["**/*.sage"])),
        )

    return config


def discover_config(start_path: Path | None = None) -> tuple[SageConfig, Path | None]:
    """Load the nearest sage.toml, falling back to defaults when there is none."""
    try:
        path = find_config(start_path)
    except FileNotFoundError:
        return SageConfig(), None
    return load_config(path), path
