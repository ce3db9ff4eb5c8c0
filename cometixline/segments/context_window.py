"""Context-window usage read from the session transcript."""

from __future__ import annotations

import json
import math
from collections.abc import Iterator
from pathlib import Path

from cometixline.config import InputData, SegmentId, TranscriptEntry
from cometixline.models import ModelConfig
from cometixline.segments.base import Segment, SegmentData
from cometixline.segments.basic import _display_float


def _read_lines(path: Path) -> list[str] | None:
    """Lines of a UTF-8 file, or None if it cannot be opened; undecodable files are empty."""
    try:
        raw = path.read_bytes()
    except OSError:
        return None
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return []
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


def _parse_entry(line: str) -> TranscriptEntry | None:
    try:
        return TranscriptEntry.from_dict(json.loads(line))
    except ValueError:
        return None


def _entries(lines: list[str]) -> Iterator[TranscriptEntry]:
    for line in lines:
        line = line.strip()
        if not line:
            continue
        entry = _parse_entry(line)
        if entry is not None:
            yield entry


def _assistant_tokens(entry: TranscriptEntry) -> int | None:
    if entry.type == "assistant" and entry.usage is not None:
        return entry.usage.normalize().display_tokens()
    return None


def _jsonl_files(directory: Path) -> list[Path]:
    try:
        return [p for p in directory.iterdir() if p.suffix == ".jsonl"]
    except OSError:
        return []


def _parse_transcript_file(path: Path) -> int | None:
    lines = _read_lines(path)
    if not lines:
        return None

    last = _parse_entry(lines[-1].strip())
    if last is not None and last.type == "summary" and last.leaf_uuid is not None:
        return _find_usage_by_leaf_uuid(last.leaf_uuid, path.parent)

    for entry in _entries(list(reversed(lines))):
        tokens = _assistant_tokens(entry)
        if tokens is not None:
            return tokens
    return None


def _find_usage_by_leaf_uuid(leaf_uuid: str, project_dir: Path) -> int | None:
    for path in _jsonl_files(project_dir):
        tokens = _search_uuid_in_file(path, leaf_uuid)
        if tokens is not None:
            return tokens
    return None


def _search_uuid_in_file(path: Path, target_uuid: str) -> int | None:
    lines = _read_lines(path)
    if lines is None:
        return None
    for entry in _entries(lines):
        if entry.uuid != target_uuid:
            continue
        if entry.type == "assistant":
            return _assistant_tokens(entry)
        if entry.type == "user" and entry.parent_uuid is not None:
            return _find_assistant_by_uuid(lines, entry.parent_uuid)
        return None
    return None


def _find_assistant_by_uuid(lines: list[str], target_uuid: str) -> int | None:
    for entry in _entries(lines):
        if entry.uuid == target_uuid:
            tokens = _assistant_tokens(entry)
            if tokens is not None:
                return tokens
    return None


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _usage_from_project_history(transcript_path: Path) -> int | None:
    sessions = sorted(_jsonl_files(transcript_path.parent), key=_mtime)
    sessions.reverse()
    for session in sessions:
        tokens = _parse_transcript_file(session)
        if tokens is not None:
            return tokens
    return None


def parse_transcript_usage(transcript_path: str | Path) -> int | None:
    """Context tokens of the latest assistant message, searching project history if needed."""
    path = Path(transcript_path)
    tokens = _parse_transcript_file(path)
    if tokens is not None:
        return tokens
    if not path.exists():
        return _usage_from_project_history(path)
    return None


def _fixed(value: float, digits: int) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return f"{value:.{digits}f}"


def _rate(tokens: int, limit: int) -> float:
    if limit == 0:
        return math.inf if tokens > 0 else math.nan
    return tokens / limit * 100.0


def _format_percentage(rate: float) -> str:
    integral = math.isfinite(rate) and rate == math.trunc(rate)
    return f"{_fixed(rate, 0 if integral else 1)}%"


def _format_tokens(tokens: int) -> str:
    if tokens < 1000:
        return str(tokens)
    thousands = tokens / 1000.0
    if thousands == math.trunc(thousands):
        return f"{int(thousands)}k"
    return f"{thousands:.1f}k"


class ContextWindowSegment(Segment):
    """Share of the model's context window that the conversation fills."""

    id = SegmentId.CONTEXT_WINDOW

    def __init__(self, model_config: ModelConfig | None = None) -> None:
        self.model_config = model_config

    def collect(self, input_data: InputData) -> SegmentData | None:
        models = self.model_config if self.model_config is not None else ModelConfig.load()
        limit = models.get_context_limit(input_data.model.id)
        tokens = parse_transcript_usage(input_data.transcript_path)

        if tokens is None:
            percentage = tokens_text = "-"
            metadata = {"tokens": "-", "percentage": "-"}
        else:
            rate = _rate(tokens, limit)
            percentage = _format_percentage(rate)
            tokens_text = _format_tokens(tokens)
            metadata = {"tokens": str(tokens), "percentage": _display_float(rate)}
        metadata["limit"] = str(limit)
        metadata["model"] = input_data.model.id

        return SegmentData(
            primary=f"{percentage} · {tokens_text} tokens",
            metadata=metadata,
        )