"""Configuration types, Claude Code input data and token usage normalisation."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _section(data: Any, key: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"expected a table, got {type(data).__name__}")
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, dict):
        raise ValueError(f"field `{key}` must be a table")
    return value


def _req_str(data: dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _req_bool(data: dict[str, Any], key: str) -> bool:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"field `{key}` must be a boolean")
    return value


def _opt_uint(data: dict[str, Any], key: str, limit: int = _U32_MAX) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not _is_int(value) or not 0 <= value <= limit:
        raise ValueError(f"field `{key}` must be an unsigned integer up to {limit}")
    return value


def _opt_float(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field `{key}` must be a number")
    return float(value)


def _is_u8(value: Any) -> bool:
    return _is_int(value) and 0 <= value <= _U8_MAX


class StyleMode(Enum):
    """How segment icons are drawn."""

    PLAIN = "plain"
    NERD_FONT = "nerd_font"
    POWERLINE = "powerline"


_SEGMENT_TITLES = {
    "model": "Model",
    "directory": "Directory",
    "git": "Git",
    "context_window": "Context Window",
    "usage": "Usage",
    "cost": "Cost",
    "session": "Session",
    "output_style": "Output Style",
    "update": "Update",
    "effort": "Effort",
    "extra_usage": "Extra Usage",
    "usage7d": "Usage 7d",
}


class SegmentId(Enum):
    """Identifier of a statusline segment."""

    MODEL = "model"
    DIRECTORY = "directory"
    GIT = "git"
    CONTEXT_WINDOW = "context_window"
    USAGE = "usage"
    COST = "cost"
    SESSION = "session"
    OUTPUT_STYLE = "output_style"
    UPDATE = "update"
    EFFORT = "effort"
    EXTRA_USAGE = "extra_usage"
    USAGE_7D = "usage7d"

    def __str__(self) -> str:
        return _SEGMENT_TITLES[self.value]

    @property
    def debug_name(self) -> str:
        """The identifier in CamelCase, as used in diagnostics."""
        return "".join(part.capitalize() for part in self.value.split("_"))


@dataclass(frozen=True)
class AnsiColor:
    """A terminal colour: 16-colour index, 256-colour index or RGB triple."""

    c16: int | None = None
    c256: int | None = None
    rgb: tuple[int, int, int] | None = None

    def __post_init__(self) -> None:
        chosen = [v for v in (self.c16, self.c256, self.rgb) if v is not None]
        if len(chosen) != 1:
            raise ValueError("exactly one of c16, c256 or rgb must be given")
        if self.c16 is not None and not _is_u8(self.c16):
            raise ValueError("c16 must be in 0..=255")
        if self.c256 is not None and not _is_u8(self.c256):
            raise ValueError("c256 must be in 0..=255")
        if self.rgb is not None:
            if len(self.rgb) != 3 or not all(_is_u8(v) for v in self.rgb):
                raise ValueError("rgb must be three values in 0..=255")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnsiColor:
        if not isinstance(data, dict):
            raise ValueError("colour must be a table")
        if _is_u8(data.get("c16")):
            return cls(c16=data["c16"])
        if _is_u8(data.get("c256")):
            return cls(c256=data["c256"])
        channels = (data.get("r"), data.get("g"), data.get("b"))
        if all(_is_u8(v) for v in channels):
            return cls(rgb=channels)  # type: ignore[arg-type]
        raise ValueError("data did not match any colour variant")

    def to_dict(self) -> dict[str, int]:
        if self.c16 is not None:
            return {"c16": self.c16}
        if self.c256 is not None:
            return {"c256": self.c256}
        r, g, b = self.rgb  # type: ignore[misc]
        return {"r": r, "g": g, "b": b}


@dataclass
class IconConfig:
    plain: str
    nerd_font: str


@dataclass
class ColorConfig:
    icon: AnsiColor | None = None
    text: AnsiColor | None = None
    background: AnsiColor | None = None


@dataclass
class TextStyleConfig:
    text_bold: bool = False


@dataclass
class StyleConfig:
    mode: StyleMode
    separator: str


def _opt_color(data: dict[str, Any], key: str) -> AnsiColor | None:
    value = data.get(key)
    return None if value is None else AnsiColor.from_dict(value)


@dataclass
class SegmentConfig:
    """Appearance and options of a single segment."""

    id: SegmentId
    enabled: bool
    icon: IconConfig
    colors: ColorConfig = field(default_factory=ColorConfig)
    styles: TextStyleConfig = field(default_factory=TextStyleConfig)
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SegmentConfig:
        if not isinstance(data, dict):
            raise ValueError("segment must be a table")
        icon = _section(data, "icon")
        colors = _section(data, "colors")
        styles = _section(data, "styles")
        options = _section(data, "options")
        return cls(
            id=SegmentId(_req_str(data, "id")),
            enabled=_req_bool(data, "enabled"),
            icon=IconConfig(
                plain=_req_str(icon, "plain"),
                nerd_font=_req_str(icon, "nerd_font"),
            ),
            colors=ColorConfig(
                icon=_opt_color(colors, "icon"),
                text=_opt_color(colors, "text"),
                background=_opt_color(colors, "background"),
            ),
            styles=TextStyleConfig(text_bold=_req_bool(styles, "text_bold")),
            options=copy.deepcopy(options),
        )

    def to_dict(self) -> dict[str, Any]:
        colors = {
            name: color.to_dict()
            for name, color in (
                ("icon", self.colors.icon),
                ("text", self.colors.text),
                ("background", self.colors.background),
            )
            if color is not None
        }
        return {
            "id": self.id.value,
            "enabled": self.enabled,
            "icon": {"plain": self.icon.plain, "nerd_font": self.icon.nerd_font},
            "colors": colors,
            "styles": {"text_bold": self.styles.text_bold},
            "options": copy.deepcopy(self.options),
        }


@dataclass
class Config:
    """The full statusline configuration."""

    style: StyleConfig
    segments: list[SegmentConfig]
    theme: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        style = _section(data, "style")
        if "segments" not in data:
            raise ValueError("missing field `segments`")
        segments = data["segments"]
        if not isinstance(segments, list):
            raise ValueError("field `segments` must be an array")
        return cls(
            style=StyleConfig(
                mode=StyleMode(_req_str(style, "mode")),
                separator=_req_str(style, "separator"),
            ),
            segments=[SegmentConfig.from_dict(item) for item in segments],
            theme=_req_str(data, "theme"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "style": {"mode": self.style.mode.value, "separator": self.style.separator},
            "segments": [segment.to_dict() for segment in self.segments],
            "theme": self.theme,
        }

    @staticmethod
    def merge_theme_visuals(current: Config, theme: Config) -> Config:
        """Take a theme's look while keeping each segment's enabled state and options."""
        current_by_id = {segment.id: segment for segment in current.segments}
        merged: list[SegmentConfig] = []
        seen: set[SegmentId] = set()
        for theme_segment in theme.segments:
            segment = copy.deepcopy(theme_segment)
            previous = current_by_id.get(segment.id)
            if previous is not None:
                segment.enabled = previous.enabled
                segment.options = copy.deepcopy(previous.options)
            seen.add(segment.id)
            merged.append(segment)
        merged.extend(
            copy.deepcopy(segment) for segment in current.segments if segment.id not in seen
        )
        return Config(
            style=copy.deepcopy(theme.style),
            segments=merged,
            theme=theme.theme,
        )

    def check(self) -> None:
        """Raise ValueError if the configuration is unusable."""
        if not self.segments:
            raise ValueError("No segments configured")
        seen: set[SegmentId] = set()
        for segment in self.segments:
            if segment.id in seen:
                raise ValueError(f"Duplicate segment ID: {segment.id.debug_name}")
            seen.add(segment.id)


@dataclass
class ModelInfo:
    id: str
    display_name: str


@dataclass
class Workspace:
    current_dir: str


@dataclass
class CostInfo:
    total_cost_usd: float | None = None
    total_duration_ms: int | None = None
    total_api_duration_ms: int | None = None
    total_lines_added: int | None = None
    total_lines_removed: int | None = None


@dataclass
class OutputStyle:
    name: str


@dataclass
class InputData:
    """The JSON document Claude Code writes to the statusline's standard input."""

    model: ModelInfo
    workspace: Workspace
    transcript_path: str
    cost: CostInfo | None = None
    output_style: OutputStyle | None = None
    effort_level: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InputData:
        model = _section(data, "model")
        workspace = _section(data, "workspace")
        cost_data = data.get("cost")
        cost = None
        if cost_data is not None:
            if not isinstance(cost_data, dict):
                raise ValueError("field `cost` must be an object")
            cost = CostInfo(
                total_cost_usd=_opt_float(cost_data, "total_cost_usd"),
                total_duration_ms=_opt_uint(cost_data, "total_duration_ms", _U64_MAX),
                total_api_duration_ms=_opt_uint(cost_data, "total_api_duration_ms", _U64_MAX),
                total_lines_added=_opt_uint(cost_data, "total_lines_added"),
                total_lines_removed=_opt_uint(cost_data, "total_lines_removed"),
            )
        style_data = data.get("output_style")
        output_style = None
        if style_data is not None:
            if not isinstance(style_data, dict):
                raise ValueError("field `output_style` must be an object")
            output_style = OutputStyle(name=_req_str(style_data, "name"))
        return cls(
            model=ModelInfo(
                id=_req_str(model, "id"),
                display_name=_req_str(model, "display_name"),
            ),
            workspace=Workspace(current_dir=_req_str(workspace, "current_dir")),
            transcript_path=_req_str(data, "transcript_path"),
            cost=cost,
            output_style=output_style,
            effort_level=_opt_str(data, "effort_level"),
        )


@dataclass
class PromptTokensDetails:
    cached_tokens: int | None = None
    audio_tokens: int | None = None


@dataclass
class NormalizedUsage:
    """Token counts merged from any provider's usage format."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    calculation_source: str = ""
    raw_data_available: list[str] = field(default_factory=list)

    def context_tokens(self) -> int:
        """Tokens that occupy the context window, including this turn's output."""
        return (
            self.input_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
            + self.output_tokens
        )

    def total_for_cost(self) -> int:
        if self.total_tokens > 0:
            return self.total_tokens
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )

    def display_tokens(self) -> int:
        context = self.context_tokens()
        if context > 0:
            return context
        if self.total_tokens > 0:
            return self.total_tokens
        return max(self.input_tokens, self.output_tokens)


_RAW_USAGE_KEYS = (
    "input_tokens",
    "prompt_tokens",
    "output_tokens",
    "completion_tokens",
    "total_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
    "cache_creation_prompt_tokens",
    "cache_read_prompt_tokens",
    "cached_tokens",
)


@dataclass
class RawUsage:
    """Usage data as reported by an Anthropic- or OpenAI-style provider."""

    input_tokens: int | None = None
    prompt_tokens: int | None = None
    output_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    cache_creation_prompt_tokens: int | None = None
    cache_read_prompt_tokens: int | None = None
    cached_tokens: int | None = None
    prompt_tokens_details: PromptTokensDetails | None = None
    completion_tokens_details: dict[str, int] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawUsage:
        if not isinstance(data, dict):
            raise ValueError("usage must be an object")
        values = {key: _opt_uint(data, key) for key in _RAW_USAGE_KEYS}

        details = None
        details_data = data.get("prompt_tokens_details")
        if details_data is not None:
            if not isinstance(details_data, dict):
                raise ValueError("field `prompt_tokens_details` must be an object")
            details = PromptTokensDetails(
                cached_tokens=_opt_uint(details_data, "cached_tokens"),
                audio_tokens=_opt_uint(details_data, "audio_tokens"),
            )

        completion = None
        completion_data = data.get("completion_tokens_details")
        if completion_data is not None:
            if not isinstance(completion_data, dict):
                raise ValueError("field `completion_tokens_details` must be an object")
            completion = {key: _opt_uint(completion_data, key) for key in completion_data}
            if any(value is None for value in completion.values()):
                raise ValueError("completion token details must be integers")

        known = set(_RAW_USAGE_KEYS) | {"prompt_tokens_details", "completion_tokens_details"}
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(
            **values,
            prompt_tokens_details=details,
            completion_tokens_details=completion,
            extra=extra,
        )

    def normalize(self) -> NormalizedUsage:
        """Merge the provider fields, preferring Anthropic names over OpenAI ones."""

        def first(*values: int | None) -> int:
            return next((v for v in values if v is not None), 0)

        available: list[str] = []

        input_tokens = first(self.input_tokens, self.prompt_tokens)
        if input_tokens > 0:
            available.append("input_tokens")

        output_tokens = first(self.output_tokens, self.completion_tokens)
        if output_tokens > 0:
            available.append("output_tokens")

        total = first(self.total_tokens)
        if total > 0:
            available.append("total_tokens")

        cache_creation = first(
            self.cache_creation_input_tokens, self.cache_creation_prompt_tokens
        )
        if cache_creation > 0:
            available.append("cache_creation")

        nested = self.prompt_tokens_details.cached_tokens if self.prompt_tokens_details else None
        cache_read = first(
            self.cache_read_input_tokens,
            self.cache_read_prompt_tokens,
            self.cached_tokens,
            nested,
        )
        if cache_read > 0:
            available.append("cache_read")

        sources: list[str] = []
        if total > 0:
            sources.append("total_tokens_direct")
            total_value = total
        elif input_tokens or output_tokens or cache_read or cache_creation:
            sources.append("total_from_components")
            total_value = input_tokens + output_tokens + cache_read + cache_creation
        else:
            total_value = 0

        return NormalizedUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_value,
            cache_creation_input_tokens=cache_creation,
            cache_read_input_tokens=cache_read,
            calculation_source="+".join(sources),
            raw_data_available=available,
        )


@dataclass
class TranscriptEntry:
    """One line of a session transcript file."""

    type: str | None = None
    usage: RawUsage | None = None
    leaf_uuid: str | None = None
    uuid: str | None = None
    parent_uuid: str | None = None
    summary: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptEntry:
        if not isinstance(data, dict):
            raise ValueError("transcript entry must be an object")
        usage = None
        message = data.get("message")
        if message is not None:
            if not isinstance(message, dict):
                raise ValueError("field `message` must be an object")
            usage_data = message.get("usage")
            if usage_data is not None:
                usage = RawUsage.from_dict(usage_data)
        return cls(
            type=_opt_str(data, "type"),
            usage=usage,
            leaf_uuid=_opt_str(data, "leafUuid"),
            uuid=_opt_str(data, "uuid"),
            parent_uuid=_opt_str(data, "parentUuid"),
            summary=_opt_str(data, "summary"),
        )