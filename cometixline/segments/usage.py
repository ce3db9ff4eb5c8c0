"""Plan usage segments: five-hour window, seven-day window and paid extra usage."""

from __future__ import annotations

import json
import math
import re
import subprocess
import time
import tomllib
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from cometixline.config import InputData, SegmentId
from cometixline.loader import load_config
from cometixline.segments.base import (
    Segment,
    SegmentData,
    circle_icon_for_utilization,
    hourglass_icon_for_utilization,
    sand_timer_icon_for_utilization,
)
from cometixline.segments.basic import _display_float

DEFAULT_API_BASE_URL = "https://api.anthropic.com"
DEFAULT_CACHE_DURATION = 60
DEFAULT_TIMEOUT = 2
SHARED_CACHE_PATH = Path("/tmp/claude/statusline-usage-cache.json")

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})\Z"
)


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field `{key}` must be a number")
    return float(value)


def _req_number(data: dict[str, Any], key: str) -> float:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return _number(data[key], key)


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _req_str(data: dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


def _table(data: Any, key: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"field `{key}` must be an object")
    return data


@dataclass
class UsagePeriod:
    """Utilisation of one rate-limit window and when it resets."""

    utilization: float
    resets_at: str | None = None

    @classmethod
    def _from_dict(cls, data: Any, key: str) -> UsagePeriod:
        table = _table(data, key)
        return cls(
            utilization=_req_number(table, "utilization"),
            resets_at=_opt_str(table, "resets_at"),
        )

    def _to_dict(self) -> dict[str, Any]:
        return {"utilization": self.utilization, "resets_at": self.resets_at}


@dataclass
class ExtraUsagePeriod:
    """Paid extra usage; credits are in cents."""

    is_enabled: bool = False
    utilization: float = 0.0
    used_credits: float = 0.0
    monthly_limit: float = 0.0

    @classmethod
    def _from_dict(cls, data: Any) -> ExtraUsagePeriod:
        table = _table(data, "extra_usage")
        enabled = table.get("is_enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ValueError("field `is_enabled` must be a boolean")

        def value(key: str) -> float:
            raw = table.get(key)
            return 0.0 if raw is None else _number(raw, key)

        return cls(
            is_enabled=bool(enabled),
            utilization=value("utilization"),
            used_credits=value("used_credits"),
            monthly_limit=value("monthly_limit"),
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "is_enabled": self.is_enabled,
            "utilization": self.utilization,
            "used_credits": self.used_credits,
            "monthly_limit": self.monthly_limit,
        }


@dataclass
class ApiUsageResponse:
    """The usage endpoint's reply, also the shared cache's format."""

    five_hour: UsagePeriod
    seven_day: UsagePeriod
    extra_usage: ExtraUsagePeriod | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApiUsageResponse:
        table = _table(data, "response")
        for key in ("five_hour", "seven_day"):
            if key not in table:
                raise ValueError(f"missing field `{key}`")
        extra = table.get("extra_usage")
        return cls(
            five_hour=UsagePeriod._from_dict(table["five_hour"], "five_hour"),
            seven_day=UsagePeriod._from_dict(table["seven_day"], "seven_day"),
            extra_usage=None if extra is None else ExtraUsagePeriod._from_dict(extra),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "five_hour": self.five_hour._to_dict(),
            "seven_day": self.seven_day._to_dict(),
            "extra_usage": None if self.extra_usage is None else self.extra_usage._to_dict(),
        }


@dataclass
class ApiUsageCache:
    """Usage figures cached on disk together with when they were fetched."""

    five_hour_utilization: float
    seven_day_utilization: float
    cached_at: str
    resets_at: str | None = None
    five_hour_resets_at: str | None = None
    extra_usage_enabled: bool = False
    extra_usage_utilization: float = 0.0
    extra_usage_used_credits: float = 0.0
    extra_usage_monthly_limit: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApiUsageCache:
        table = _table(data, "cache")
        enabled = table.get("extra_usage_enabled", False)
        if not isinstance(enabled, bool):
            raise ValueError("field `extra_usage_enabled` must be a boolean")

        def optional_number(key: str) -> float:
            return _number(table[key], key) if key in table else 0.0

        return cls(
            five_hour_utilization=_req_number(table, "five_hour_utilization"),
            seven_day_utilization=_req_number(table, "seven_day_utilization"),
            cached_at=_req_str(table, "cached_at"),
            resets_at=_opt_str(table, "resets_at"),
            five_hour_resets_at=_opt_str(table, "five_hour_resets_at"),
            extra_usage_enabled=enabled,
            extra_usage_utilization=optional_number("extra_usage_utilization"),
            extra_usage_used_credits=optional_number("extra_usage_used_credits"),
            extra_usage_monthly_limit=optional_number("extra_usage_monthly_limit"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "five_hour_utilization": self.five_hour_utilization,
            "seven_day_utilization": self.seven_day_utilization,
            "resets_at": self.resets_at,
            "five_hour_resets_at": self.five_hour_resets_at,
            "cached_at": self.cached_at,
            "extra_usage_enabled": self.extra_usage_enabled,
            "extra_usage_utilization": self.extra_usage_utilization,
            "extra_usage_used_credits": self.extra_usage_used_credits,
            "extra_usage_monthly_limit": self.extra_usage_monthly_limit,
        }


def _parse_rfc3339(text: str) -> datetime | None:
    found = _RFC3339.match(text)
    if found is None:
        return None
    year, month, day, hour, minute, second = (int(g) for g in found.groups()[:6])
    fraction = found.group(7)
    micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
    zone = found.group(8)
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours > 23 or minutes > 59:
            return None
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    try:
        return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)
    except ValueError:
        return None


def _to_local(reset_time: str | None) -> datetime | None:
    if reset_time is None:
        return None
    parsed = _parse_rfc3339(reset_time)
    if parsed is None:
        return None
    try:
        return parsed.astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def format_time_only(reset_time: str | None) -> str:
    """Local 'HH:MM' of an RFC 3339 timestamp, or '?'."""
    local = _to_local(reset_time)
    return "?" if local is None else f"{local.hour:02}:{local.minute:02}"


def format_datetime(reset_time: str | None) -> str:
    """Local 'mon D, HH:MM' of an RFC 3339 timestamp, or '?'."""
    local = _to_local(reset_time)
    if local is None:
        return "?"
    return f"{_MONTHS[local.month - 1]} {local.day}, {local.hour:02}:{local.minute:02}"


def is_cache_valid(cache: ApiUsageCache, cache_duration: int) -> bool:
    """Whether the cache was written fewer than ``cache_duration`` seconds ago."""
    cached_at = _parse_rfc3339(cache.cached_at)
    if cached_at is None:
        return False
    elapsed = datetime.now(timezone.utc) - cached_at
    return int(elapsed.total_seconds()) < cache_duration


def response_to_cache(response: ApiUsageResponse) -> ApiUsageCache:
    """Cache record for an API response, stamped with the current time."""
    extra = response.extra_usage
    return ApiUsageCache(
        five_hour_utilization=response.five_hour.utilization,
        seven_day_utilization=response.seven_day.utilization,
        cached_at=datetime.now(timezone.utc).isoformat(),
        resets_at=response.seven_day.resets_at,
        five_hour_resets_at=response.five_hour.resets_at,
        extra_usage_enabled=extra is not None and extra.is_enabled,
        extra_usage_utilization=extra.utilization if extra else 0.0,
        extra_usage_used_credits=extra.used_credits if extra else 0.0,
        extra_usage_monthly_limit=extra.monthly_limit if extra else 0.0,
    )


def _default_cache_path() -> Path | None:
    try:
        return Path.home() / ".claude" / "ccline" / ".api_usage_cache.json"
    except RuntimeError:
        return None


def _read_json(path: Path | None) -> Any:
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def load_cache(path: str | Path | None = None) -> ApiUsageCache | None:
    """Read the usage cache (the default location if None); None if missing or invalid."""
    data = _read_json(Path(path) if path is not None else _default_cache_path())
    if data is None:
        return None
    try:
        return ApiUsageCache.from_dict(data)
    except ValueError:
        return None


def _write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError:
        pass


def save_cache(cache: ApiUsageCache, path: str | Path | None = None) -> None:
    """Write the usage cache as pretty JSON; failures are ignored."""
    target = Path(path) if path is not None else _default_cache_path()
    if target is None:
        return
    _write_text(target, json.dumps(cache.to_dict(), indent=2, ensure_ascii=False))


def _load_shared(path: Path) -> ApiUsageResponse | None:
    data = _read_json(path)
    if data is None:
        return None
    try:
        return ApiUsageResponse.from_dict(data)
    except ValueError:
        return None


def _load_shared_if_fresh(path: Path, max_age: int) -> ApiUsageResponse | None:
    try:
        modified = path.stat().st_mtime
    except OSError:
        return None
    age = max(0.0, time.time() - modified)
    if int(age) >= max_age:
        return None
    return _load_shared(path)


def _save_shared(response: ApiUsageResponse, path: Path) -> None:
    _write_text(path, json.dumps(response.to_dict(), separators=(",", ":"), ensure_ascii=False))


def _round_u8(value: float) -> int:
    if math.isnan(value):
        return 0
    rounded = math.floor(abs(value) + 0.5) * (1 if value >= 0 else -1)
    return max(0, min(255, rounded))


def build_segment_data(five_hour_util: float, five_hour_resets_at: str | None) -> SegmentData:
    """Five-hour usage shown as 'N% @HH:MM' with an hourglass icon."""
    return SegmentData(
        primary=f"{_round_u8(five_hour_util)}% @{format_time_only(five_hour_resets_at)}",
        metadata={
            "dynamic_icon": hourglass_icon_for_utilization(five_hour_util / 100.0),
            "five_hour_utilization": _display_float(five_hour_util),
        },
    )


def _claude_code_user_agent() -> str:
    try:
        result = subprocess.run(["claude", "--version"], capture_output=True)
    except OSError:
        return "claude-code"
    if result.returncode == 0:
        words = result.stdout.decode("utf-8", errors="replace").split()
        if words:
            return f"claude-code/{words[0]}"
    return "claude-code"


def _fetch_api_usage(
    api_base_url: str, token: str, timeout: int, proxy: str | None
) -> ApiUsageResponse | None:
    request = urllib.request.Request(
        f"{api_base_url}/api/oauth/usage",
        headers={
            "Authorization": f"Bearer {token}",
            "anthropic-beta": "oauth-2025-04-20",
            "User-Agent": _claude_code_user_agent(),
        },
    )
    handlers = [urllib.request.ProxyHandler({"http": proxy, "https": proxy})] if proxy else []
    opener = urllib.request.build_opener(*handlers)
    try:
        with opener.open(request, timeout=timeout) as response:
            return ApiUsageResponse.from_dict(json.loads(response.read()))
    except (OSError, ValueError):
        return None


def _opt_u64(options: dict[str, Any], key: str, default: int) -> int:
    value = options.get(key)
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return default


def _configured_usage_options() -> dict[str, Any] | None:
    try:
        config = load_config(default=None)
    except (OSError, ValueError, tomllib.TOMLDecodeError):
        return None
    if config is None:
        return {}
    segment = next((s for s in config.segments if s.id is SegmentId.USAGE), None)
    return dict(segment.options) if segment is not None else {}


class UsageSegment(Segment):
    """Five-hour plan usage, from cache, shared cache or the usage API."""

    id = SegmentId.USAGE

    def __init__(
        self,
        *,
        options: dict[str, Any] | None = None,
        cache_path: str | Path | None = None,
        shared_cache_path: str | Path | None = None,
        token: str | None = None,
        proxy: str | None = None,
    ) -> None:
        self.options = options
        self.cache_path = Path(cache_path) if cache_path is not None else _default_cache_path()
        self.shared_cache_path = (
            Path(shared_cache_path) if shared_cache_path is not None else SHARED_CACHE_PATH
        )
        self.token = token
        self.proxy = proxy

    def _save(self, cache: ApiUsageCache) -> None:
        if self.cache_path is not None:
            save_cache(cache, self.cache_path)

    def collect(self, input_data: InputData) -> SegmentData | None:
        options = self.options if self.options is not None else _configured_usage_options()
        if options is None:
            return None
        cache_duration = _opt_u64(options, "cache_duration", DEFAULT_CACHE_DURATION)

        cached = load_cache(self.cache_path) if self.cache_path is not None else None
        if cached is not None and is_cache_valid(cached, cache_duration):
            return build_segment_data(cached.five_hour_utilization, cached.five_hour_resets_at)

        shared = _load_shared_if_fresh(self.shared_cache_path, cache_duration)
        if shared is not None:
            self._save(response_to_cache(shared))
            return build_segment_data(shared.five_hour.utilization, shared.five_hour.resets_at)

        if self.token is not None:
            base_url = options.get("api_base_url")
            if not isinstance(base_url, str):
                base_url = DEFAULT_API_BASE_URL
            timeout = _opt_u64(options, "timeout", DEFAULT_TIMEOUT)
            response = _fetch_api_usage(base_url, self.token, timeout, self.proxy)
            if response is not None:
                self._save(response_to_cache(response))
                _save_shared(response, self.shared_cache_path)
                return build_segment_data(
                    response.five_hour.utilization, response.five_hour.resets_at
                )

        if cached is not None:
            return build_segment_data(cached.five_hour_utilization, cached.five_hour_resets_at)
        shared = _load_shared(self.shared_cache_path)
        if shared is not None:
            self._save(response_to_cache(shared))
            return build_segment_data(shared.five_hour.utilization, shared.five_hour.resets_at)
        return None


class Usage7dSegment(Segment):
    """Seven-day plan usage from the usage cache."""

    id = SegmentId.USAGE_7D

    def __init__(self, cache_path: str | Path | None = None) -> None:
        self.cache_path = cache_path

    def collect(self, input_data: InputData) -> SegmentData | None:
        cache = load_cache(self.cache_path)
        if cache is None:
            return None
        utilization = cache.seven_day_utilization
        return SegmentData(
            primary=f"{_round_u8(utilization)}% @{format_datetime(cache.resets_at)}",
            metadata={
                "dynamic_icon": sand_timer_icon_for_utilization(utilization / 100.0),
                "seven_day_utilization": _display_float(utilization),
            },
        )


class ExtraUsageSegment(Segment):
    """Paid extra usage spent against its monthly limit, in dollars."""

    id = SegmentId.EXTRA_USAGE

    def __init__(self, cache_path: str | Path | None = None) -> None:
        self.cache_path = cache_path

    def collect(self, input_data: InputData) -> SegmentData | None:
        cache = load_cache(self.cache_path)
        if cache is None or not cache.extra_usage_enabled:
            return None
        used = cache.extra_usage_used_credits / 100.0
        limit = cache.extra_usage_monthly_limit / 100.0
        return SegmentData(
            primary=f"${used:.2f}/${limit:.2f}",
            metadata={
                "dynamic_icon": circle_icon_for_utilization(cache.extra_usage_utilization / 100.0),
                "extra_usage_utilization": _display_float(cache.extra_usage_utilization),
                "used_credits": f"{used:.2f}",
                "monthly_limit": f"{limit:.2f}",
            },
        )