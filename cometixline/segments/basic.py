"""Segments built straight from Claude Code's input: model, directory, cost, session, style."""

from __future__ import annotations

import math
from decimal import Decimal

from cometixline.config import InputData, SegmentId
from cometixline.models import ModelConfig
from cometixline.segments.base import Segment, SegmentData

_GREEN = "\x1b[32m"
_RED = "\x1b[31m"
_RESET = "\x1b[0m"


def _display_float(value: float) -> str:
    """Shortest round-tripping decimal form, without exponent and without a trailing '.0'."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def extract_directory_name(path: str) -> str:
    """Last component of a Unix or Windows path; 'root' when it is empty."""
    if "\\" in path:
        name = path.rsplit("\\", 1)[-1]
    elif "/" in path:
        name = path.rsplit("/", 1)[-1]
    else:
        name = path
    return name or "root"


def format_duration(ms: int) -> str:
    """Compact duration such as '450ms', '12s', '3m5s' or '2h10m'."""
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms // 1000}s"
    if ms < 3_600_000:
        minutes, seconds = ms // 60_000, (ms % 60_000) // 1000
        return f"{minutes}m" if seconds == 0 else f"{minutes}m{seconds}s"
    hours, minutes = ms // 3_600_000, (ms % 3_600_000) // 60_000
    return f"{hours}h" if minutes == 0 else f"{hours}h{minutes}m"


class CostSegment(Segment):
    """Total session cost in US dollars."""

    id = SegmentId.COST

    def collect(self, input_data: InputData) -> SegmentData | None:
        cost_info = input_data.cost
        if cost_info is None or cost_info.total_cost_usd is None:
            return None
        cost = cost_info.total_cost_usd
        primary = "$0" if cost == 0.0 or cost < 0.01 else f"${cost:.2f}"
        return SegmentData(primary=primary, metadata={"cost": _display_float(cost)})


class DirectorySegment(Segment):
    """Name of the current working directory."""

    id = SegmentId.DIRECTORY

    def collect(self, input_data: InputData) -> SegmentData | None:
        current_dir = input_data.workspace.current_dir
        return SegmentData(
            primary=extract_directory_name(current_dir),
            metadata={"full_path": current_dir},
        )


class ModelSegment(Segment):
    """Display name of the active model."""

    id = SegmentId.MODEL

    def __init__(self, model_config: ModelConfig | None = None) -> None:
        self.model_config = model_config

    def _format_name(self, model_id: str, display_name: str) -> str:
        models = self.model_config if self.model_config is not None else ModelConfig.load()
        configured = models.get_display_name(model_id)
        if configured is not None:
            return configured
        base = display_name or model_id
        suffix = models.get_display_suffix(model_id)
        return base + suffix if suffix is not None else base

    def collect(self, input_data: InputData) -> SegmentData | None:
        model = input_data.model
        return SegmentData(
            primary=self._format_name(model.id, model.display_name),
            metadata={"model_id": model.id, "display_name": model.display_name},
        )


class OutputStyleSegment(Segment):
    """Name of the active output style."""

    id = SegmentId.OUTPUT_STYLE

    def collect(self, input_data: InputData) -> SegmentData | None:
        style = input_data.output_style
        if style is None:
            return None
        return SegmentData(primary=style.name, metadata={"style_name": style.name})


class SessionSegment(Segment):
    """Session duration and lines added or removed."""

    id = SegmentId.SESSION

    @staticmethod
    def _line_changes(added: int | None, removed: int | None) -> str:
        if added is not None and removed is not None:
            if added > 0 or removed > 0:
                return f"{_GREEN}+{added}{_RESET} {_RED}-{removed}{_RESET}"
            return ""
        if added is not None and added > 0:
            return f"{_GREEN}+{added}{_RESET}"
        if removed is not None and removed > 0:
            return f"{_RED}-{removed}{_RESET}"
        return ""

    def collect(self, input_data: InputData) -> SegmentData | None:
        cost_info = input_data.cost
        if cost_info is None or cost_info.total_duration_ms is None:
            return None

        metadata = {"duration_ms": str(cost_info.total_duration_ms)}
        if cost_info.total_api_duration_ms is not None:
            metadata["api_duration_ms"] = str(cost_info.total_api_duration_ms)
        if cost_info.total_lines_added is not None:
            metadata["lines_added"] = str(cost_info.total_lines_added)
        if cost_info.total_lines_removed is not None:
            metadata["lines_removed"] = str(cost_info.total_lines_removed)

        return SegmentData(
            primary=format_duration(cost_info.total_duration_ms),
            secondary=self._line_changes(
                cost_info.total_lines_added, cost_info.total_lines_removed
            ),
            metadata=metadata,
        )