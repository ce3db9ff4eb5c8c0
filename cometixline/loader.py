"""Locating, reading and writing the statusline configuration file."""

from __future__ import annotations

import tomllib
from pathlib import Path

import tomli_w

from cometixline.config import Config


def _base_dir(home: str | Path | None) -> Path:
    if home is not None:
        return Path(home) / ".claude" / "ccline"
    try:
        return Path.home() / ".claude" / "ccline"
    except RuntimeError:
        return Path(".claude") / "ccline"


def config_path(home: str | Path | None = None) -> Path:
    """The config file, ~/.claude/ccline/config.toml."""
    return _base_dir(home) / "config.toml"


def themes_path(home: str | Path | None = None) -> Path:
    """The themes directory, ~/.claude/ccline/themes."""
    return _base_dir(home) / "themes"


def load_from_path(path: str | Path) -> Config:
    """Read a config file; raises OSError, TOMLDecodeError or ValueError."""
    data = tomllib.loads(Path(path).read_text(encoding="utf-8"))
    return Config.from_dict(data)


def load_config(path: str | Path | None = None, default: Config | None = None) -> Config | None:
    """Load the config at ``path`` (the default location if None), or ``default`` if absent."""
    target = Path(path) if path is not None else config_path()
    if not target.exists():
        return default
    return load_from_path(target)


def config_to_toml(config: Config) -> str:
    """Serialise a config as TOML."""
    return tomli_w.dumps(config.to_dict())


def save_config(config: Config, path: str | Path | None = None) -> Path:
    """Write the config, creating its directory; returns the path written."""
    target = Path(path) if path is not None else config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(config_to_toml(config), encoding="utf-8")
    return target