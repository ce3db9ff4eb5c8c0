"""Gathering data for every enabled segment of a configuration."""

from __future__ import annotations

from collections.abc import Callable

from cometixline.config import Config, InputData, SegmentConfig, SegmentId
from cometixline.segments.base import Segment, SegmentData
from cometixline.segments.basic import (
    CostSegment,
    DirectorySegment,
    ModelSegment,
    OutputStyleSegment,
    SessionSegment,
)
from cometixline.segments.context_window import ContextWindowSegment
from cometixline.segments.git import GitSegment
from cometixline.segments.usage import ExtraUsageSegment, Usage7dSegment, UsageSegment


def _git_segment(segment_config: SegmentConfig) -> Segment:
    show_sha = segment_config.options.get("show_sha")
    return GitSegment(show_sha=show_sha if isinstance(show_sha, bool) else False)


_FACTORIES: dict[SegmentId, Callable[[SegmentConfig], Segment]] = {
    SegmentId.MODEL: lambda _: ModelSegment(),
    SegmentId.DIRECTORY: lambda _: DirectorySegment(),
    SegmentId.GIT: _git_segment,
    SegmentId.CONTEXT_WINDOW: lambda _: ContextWindowSegment(),
    SegmentId.USAGE: lambda _: UsageSegment(),
    SegmentId.COST: lambda _: CostSegment(),
    SegmentId.SESSION: lambda _: SessionSegment(),
    SegmentId.OUTPUT_STYLE: lambda _: OutputStyleSegment(),
    SegmentId.EXTRA_USAGE: lambda _: ExtraUsageSegment(),
    SegmentId.USAGE_7D: lambda _: Usage7dSegment(),
}


def collect_all_segments(
    config: Config, input_data: InputData
) -> list[tuple[SegmentConfig, SegmentData]]:
    """Data for each enabled segment, in configured order, dropping those with nothing to show."""
    results: list[tuple[SegmentConfig, SegmentData]] = []
    for segment_config in config.segments:
        if not segment_config.enabled:
            continue
        factory = _FACTORIES.get(segment_config.id)
        if factory is None:
            continue
        data = factory(segment_config).collect(input_data)
        if data is not None:
            results.append((segment_config, data))
    return results