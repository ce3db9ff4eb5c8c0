"""Segment data, the segment interface and utilisation icons."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from cometixline.config import InputData, SegmentId


@dataclass
class SegmentData:
    """What a segment shows: main text, trailing text and extra details."""

    primary: str
    secondary: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


class Segment(ABC):
    """A source of statusline data."""

    id: SegmentId

    @abstractmethod
    def collect(self, input_data: InputData) -> SegmentData | None:
        """Gather this segment's data, or None when there is nothing to show."""


def _percent(utilization: float) -> int:
    """Percentage as a saturating 0..=255 integer, truncated toward zero."""
    value = utilization * 100.0
    if math.isnan(value) or value <= 0:
        return 0
    if value >= 255:
        return 255
    return int(value)


def circle_icon_for_utilization(utilization: float) -> str:
    """Pie-chart icon for a 0.0-1.0 utilisation fraction, in eight steps."""
    percent = _percent(utilization)
    steps = (
        (12, "\U000f0a9e"),
        (25, "\U000f0a9f"),
        (37, "\U000f0aa0"),
        (50, "\U000f0aa1"),
        (62, "\U000f0aa2"),
        (75, "\U000f0aa3"),
        (87, "\U000f0aa4"),
    )
    return next((icon for limit, icon in steps if percent <= limit), "\U000f0aa5")


def hourglass_icon_for_utilization(utilization: float) -> str:
    """Hourglass icon for a 0.0-1.0 utilisation fraction, in four steps."""
    percent = _percent(utilization)
    steps = ((25, "\uf250"), (50, "\uf251"), (75, "\uf252"))
    return next((icon for limit, icon in steps if percent <= limit), "\uf253")


def sand_timer_icon_for_utilization(utilization: float) -> str:
    """Sand-timer icon for a 0.0-1.0 utilisation fraction, in four steps."""
    percent = _percent(utilization)
    steps = ((25, "\U000f06ad"), (50, "\U000f051f"), (75, "\U000f078c"))
    return next((icon for limit, icon in steps if percent <= limit), "\U000f199f")