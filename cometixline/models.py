"""Model display names and context-window limits."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONTEXT_LIMIT = 200_000
_U32_MAX = 0xFFFF_FFFF

_DEFAULT_TEMPLATE = (
    "# CCometixLine Model Configuration\n"
    "# This file defines model display names and context limits for different LLM models\n"
    "# File location: ~/.claude/ccline/models.toml\n"
    "#\n"
    "# Claude models are automatically recognized (Sonnet, Opus, Haiku) with\n"
    "# version extraction. You only need to add entries here for overrides or\n"
    "# third-party models.\n"
    "\n"
    "# Model configurations (simple substring matching)\n"
    "# Each [[models]] section defines a model pattern and its properties\n"
    "# These take priority over built-in Claude model recognition\n"
    "\n"
    "# Example:\n"
    "# [[models]]\n"
    '# pattern = "my-model"\n'
    '# display_name = "My Model"\n'
    "# context_limit = 128000\n"
    "\n"
    "# Context modifiers override context limits and append suffix to display names\n"
    "# They are matched independently, enabling composition:\n"
    '#   model "Opus 4" + modifier " 1M" = "Opus 4 1M"\n'
    "\n"
    "# Example:\n"
    "# [[context_modifiers]]\n"
    '# pattern = "[1m]"\n'
    '# display_suffix = " 1M"\n'
    "# context_limit = 1000000\n"
)


def _req_str(data: dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _req_u32(data: dict[str, Any], key: str) -> int:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"field `{key}` must be an unsigned 32-bit integer")
    return value


def _table_list(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = data.get(key, [])
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ValueError(f"field `{key}` must be an array of tables")
    return items


@dataclass(frozen=True)
class ModelEntry:
    """A model matched by case-insensitive substring of its ID."""

    pattern: str
    display_name: str
    context_limit: int

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> ModelEntry:
        return cls(
            pattern=_req_str(data, "pattern"),
            display_name=_req_str(data, "display_name"),
            context_limit=_req_u32(data, "context_limit"),
        )


@dataclass(frozen=True)
class ContextModifier:
    """Overrides the context limit and appends a suffix to the display name."""

    pattern: str
    display_suffix: str
    context_limit: int

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> ContextModifier:
        return cls(
            pattern=_req_str(data, "pattern"),
            display_suffix=_req_str(data, "display_suffix"),
            context_limit=_req_u32(data, "context_limit"),
        )


@dataclass(frozen=True)
class _ModelFamily:
    regex: re.Pattern[str]
    display_prefix: str
    context_limit: int

    @classmethod
    def build(cls, keyword: str, display_prefix: str, context_limit: int) -> _ModelFamily:
        kw = re.escape(keyword)
        pattern = (
            rf"(?:(?P<pre_major>\d{{1,2}})(?:-(?P<pre_minor>\d{{1,2}}))?-{kw}"
            rf"|{kw}-(?P<post_major>\d{{1,2}})(?:-(?P<post_minor>\d{{1,2}}))?)"
            r"(?:-\d{3,}|-[a-z]|\[|\Z)"
        )
        return cls(re.compile(pattern), display_prefix, context_limit)

    def match(self, model_id_lower: str) -> str | None:
        found = self.regex.search(model_id_lower)
        if found is None:
            return None
        major = found.group("post_major") or found.group("pre_major")
        if major is None:
            return None
        minor = found.group("post_minor") or found.group("pre_minor")
        version = f"{major}.{minor}" if minor is not None else major
        return f"{self.display_prefix} {version}"


_BUILTIN_FAMILIES = (
    _ModelFamily.build("sonnet", "Sonnet", 200_000),
    _ModelFamily.build("opus", "Opus", 200_000),
    _ModelFamily.build("haiku", "Haiku", 200_000),
)


def _match_builtin_family(model_id: str) -> tuple[str, int] | None:
    lowered = model_id.lower()
    for family in _BUILTIN_FAMILIES:
        name = family.match(lowered)
        if name is not None:
            return name, family.context_limit
    return None


def _default_entries() -> list[ModelEntry]:
    return [
        ModelEntry("glm-4.5", "GLM-4.5", 128_000),
        ModelEntry("kimi-k2-turbo", "Kimi K2 Turbo", 128_000),
        ModelEntry("kimi-k2", "Kimi K2", 128_000),
        ModelEntry("qwen3-coder", "Qwen Coder", 256_000),
    ]


def _default_modifiers() -> list[ContextModifier]:
    return [ContextModifier("[1m]", " 1M", 1_000_000)]


def _user_models_path(home: Path | None) -> Path | None:
    if home is not None:
        return Path(home) / ".claude" / "ccline" / "models.toml"
    try:
        return Path.home() / ".claude" / "ccline" / "models.toml"
    except RuntimeError:
        return None


@dataclass
class ModelConfig:
    """Model entries and context modifiers, consulted in order."""

    model_entries: list[ModelEntry] = field(default_factory=list)
    context_modifiers: list[ContextModifier] = field(default_factory=list)

    @classmethod
    def default(cls) -> ModelConfig:
        """Built-in third-party entries and the 1M context modifier."""
        return cls(_default_entries(), _default_modifiers())

    @classmethod
    def load_from_file(cls, path: str | Path) -> ModelConfig:
        """Parse a models TOML file; raises OSError, TOMLDecodeError or ValueError."""
        data = tomllib.loads(Path(path).read_text(encoding="utf-8"))
        return cls(
            model_entries=[ModelEntry._from_dict(d) for d in _table_list(data, "models")],
            context_modifiers=[
                ContextModifier._from_dict(d) for d in _table_list(data, "context_modifiers")
            ],
        )

    @classmethod
    def load(cls, home: str | Path | None = None) -> ModelConfig:
        """Load the user file (created if absent) or ./models.toml, merged over the defaults."""
        config = cls.default()
        user_path = _user_models_path(Path(home) if home is not None else None)
        if user_path is not None and not user_path.exists():
            try:
                cls.create_default_file(user_path)
            except OSError:
                pass

        candidates = [p for p in (user_path, Path("models.toml")) if p is not None]
        for path in candidates:
            if not path.exists():
                continue
            try:
                external = cls.load_from_file(path)
            except (OSError, ValueError, tomllib.TOMLDecodeError):
                continue
            config.model_entries = external.model_entries + config.model_entries
            config.context_modifiers = external.context_modifiers + config.context_modifiers
            return config
        return config

    @staticmethod
    def create_default_file(path: str | Path) -> None:
        """Write the commented template, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(_DEFAULT_TEMPLATE, encoding="utf-8")

    def _resolve(self, model_id: str) -> tuple[str | None, int, str | None]:
        lowered = model_id.lower()

        base_name: str | None = None
        base_limit: int | None = None
        entry = next((e for e in self.model_entries if e.pattern.lower() in lowered), None)
        if entry is not None:
            base_name, base_limit = entry.display_name, entry.context_limit
        else:
            builtin = _match_builtin_family(model_id)
            if builtin is not None:
                base_name, base_limit = builtin

        modifier = next(
            (m for m in self.context_modifiers if m.pattern.lower() in lowered), None
        )

        display_name = None
        if base_name is not None:
            display_name = base_name + (modifier.display_suffix if modifier else "")

        if modifier is not None:
            limit = modifier.context_limit
        elif base_limit is not None:
            limit = base_limit
        else:
            limit = DEFAULT_CONTEXT_LIMIT

        suffix = modifier.display_suffix if modifier else None
        return display_name, limit, suffix

    def get_context_limit(self, model_id: str) -> int:
        """Modifier limit, else the matched model's, else 200k."""
        return self._resolve(model_id)[1]

    def try_get_context_limit(self, model_id: str) -> int | None:
        """The context limit, or None when nothing matched."""
        name, limit, suffix = self._resolve(model_id)
        return limit if name is not None or suffix is not None else None

    def get_display_name(self, model_id: str) -> str | None:
        """Recognised name with any modifier suffix, or None."""
        return self._resolve(model_id)[0]

    def get_display_suffix(self, model_id: str) -> str | None:
        """Suffix of the first matching context modifier, if any."""
        return self._resolve(model_id)[2]