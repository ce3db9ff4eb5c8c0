import json
import os
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from cometixline.config import InputData, ModelInfo, Workspace
from cometixline.segments.base import (
    circle_icon_for_utilization,
    hourglass_icon_for_utilization,
    sand_timer_icon_for_utilization,
)
from cometixline.segments.usage import (
    ApiUsageCache,
    ApiUsageResponse,
    ExtraUsagePeriod,
    ExtraUsageSegment,
    Usage7dSegment,
    UsagePeriod,
    UsageSegment,
    build_segment_data,
    format_datetime,
    format_time_only,
    is_cache_valid,
    load_cache,
    response_to_cache,
    save_cache,
)


@pytest.fixture
def utc_tz(monkeypatch):
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def input_data():
    return InputData(
        model=ModelInfo(id="model-id", display_name="Model"),
        workspace=Workspace(current_dir="/work"),
        transcript_path="/nonexistent/transcript.jsonl",
    )


def _response(five=30.0, seven=60.0, extra=None):
    return ApiUsageResponse(
        five_hour=UsagePeriod(utilization=five, resets_at=None),
        seven_day=UsagePeriod(utilization=seven, resets_at=None),
        extra_usage=extra,
    )


def _old_cache(five=10.0):
    return ApiUsageCache(
        five_hour_utilization=five,
        seven_day_utilization=20.0,
        cached_at="2000-01-01T00:00:00Z",
    )


def test_format_time_only_unparsable_values():
    assert format_time_only(None) == "?"
    assert format_time_only("not a date") == "?"
    assert format_time_only("2025-01-15T14:05:00") == "?"


def test_format_time_only_utc(utc_tz):
    assert format_time_only("2025-01-15T14:05:00Z") == "14:05"
    assert format_time_only("2025-01-15T14:05:00.123456789+00:00") == "14:05"


def test_format_time_only_converts_offset(utc_tz):
    assert format_time_only("2025-01-15T14:05:00+02:00") == "12:05"


def test_format_datetime(utc_tz):
    assert format_datetime("2025-03-07T09:04:00Z") == "mar 7, 09:04"
    assert format_datetime(None) == "?"
    assert format_datetime("2025-13-07T09:04:00Z") == "?"


def test_response_round_trip():
    response = _response(extra=ExtraUsagePeriod(True, 12.5, 150.0, 2000.0))
    assert ApiUsageResponse.from_dict(response.to_dict()) == response
    assert ApiUsageResponse.from_dict(_response().to_dict()) == _response()


def test_response_extra_usage_nulls_become_defaults():
    data = _response().to_dict()
    data["extra_usage"] = {
        "is_enabled": None,
        "utilization": None,
        "used_credits": None,
        "monthly_limit": None,
    }
    parsed = ApiUsageResponse.from_dict(data)
    assert parsed.extra_usage == ExtraUsagePeriod()


def test_response_missing_window_raises():
    data = _response().to_dict()
    del data["five_hour"]
    with pytest.raises(ValueError):
        ApiUsageResponse.from_dict(data)


def test_response_bad_utilization_raises():
    data = _response().to_dict()
    data["seven_day"]["utilization"] = "high"
    with pytest.raises(ValueError):
        ApiUsageResponse.from_dict(data)


def test_cache_round_trip_and_defaults():
    cache = response_to_cache(_response(extra=ExtraUsagePeriod(True, 5.0, 100.0, 500.0)))
    assert ApiUsageCache.from_dict(cache.to_dict()) == cache

    minimal = ApiUsageCache.from_dict(
        {
            "five_hour_utilization": 1,
            "seven_day_utilization": 2,
            "cached_at": "2025-01-01T00:00:00Z",
        }
    )
    assert minimal.resets_at is None
    assert minimal.extra_usage_enabled is False
    assert minimal.extra_usage_monthly_limit == 0.0


def test_cache_missing_cached_at_raises():
    with pytest.raises(ValueError):
        ApiUsageCache.from_dict({"five_hour_utilization": 1, "seven_day_utilization": 2})


def test_response_to_cache_maps_fields():
    response = ApiUsageResponse(
        five_hour=UsagePeriod(25.0, "2025-01-01T05:00:00Z"),
        seven_day=UsagePeriod(75.0, "2025-01-07T00:00:00Z"),
        extra_usage=ExtraUsagePeriod(False, 3.0, 40.0, 900.0),
    )
    cache = response_to_cache(response)
    assert cache.five_hour_utilization == 25.0
    assert cache.seven_day_utilization == 75.0
    assert cache.resets_at == "2025-01-07T00:00:00Z"
    assert cache.five_hour_resets_at == "2025-01-01T05:00:00Z"
    assert cache.extra_usage_enabled is False
    assert cache.extra_usage_monthly_limit == 900.0
    assert is_cache_valid(cache, 60)


def test_response_to_cache_without_extra():
    cache = response_to_cache(_response())
    assert cache.extra_usage_enabled is False
    assert cache.extra_usage_used_credits == 0.0


def test_is_cache_valid_rejects_old_and_invalid():
    assert not is_cache_valid(_old_cache(), 60)
    broken = _old_cache()
    broken.cached_at = "yesterday"
    assert not is_cache_valid(broken, 60)
    assert not is_cache_valid(response_to_cache(_response()), 0)


def test_save_and_load_cache(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    cache = response_to_cache(_response())
    save_cache(cache, path)
    assert load_cache(path) == cache


def test_load_cache_missing_or_corrupt(tmp_path):
    assert load_cache(tmp_path / "missing.json") is None
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json", encoding="utf-8")
    assert load_cache(corrupt) is None


def test_build_segment_data():
    data = build_segment_data(42.4, None)
    assert data.primary == "42% @?"
    assert data.metadata["dynamic_icon"] == hourglass_icon_for_utilization(0.424)
    assert data.metadata["five_hour_utilization"] == "42.4"


def test_usage_7d_segment(tmp_path, input_data):
    path = tmp_path / "cache.json"
    cache = ApiUsageCache(
        five_hour_utilization=1.0,
        seven_day_utilization=80.0,
        cached_at="2025-01-01T00:00:00Z",
    )
    save_cache(cache, path)
    data = Usage7dSegment(cache_path=path).collect(input_data)
    assert data.primary == "80% @?"
    assert data.metadata["seven_day_utilization"] == "80"
    assert data.metadata["dynamic_icon"] == sand_timer_icon_for_utilization(0.8)


def test_usage_7d_segment_without_cache(tmp_path, input_data):
    assert Usage7dSegment(cache_path=tmp_path / "none.json").collect(input_data) is None


def test_extra_usage_segment_disabled(tmp_path, input_data):
    path = tmp_path / "cache.json"
    save_cache(_old_cache(), path)
    assert ExtraUsageSegment(cache_path=path).collect(input_data) is None


def test_extra_usage_segment_enabled(tmp_path, input_data):
    path = tmp_path / "cache.json"
    cache = _old_cache()
    cache.extra_usage_enabled = True
    cache.extra_usage_utilization = 7.5
    cache.extra_usage_used_credits = 150.0
    cache.extra_usage_monthly_limit = 2000.0
    save_cache(cache, path)
    data = ExtraUsageSegment(cache_path=path).collect(input_data)
    assert data.primary == "$1.50/$20.00"
    assert data.metadata["used_credits"] == "1.50"
    assert data.metadata["extra_usage_utilization"] == "7.5"
    assert data.metadata["dynamic_icon"] == circle_icon_for_utilization(0.075)


def _segment(tmp_path, **kwargs):
    return UsageSegment(
        options={"cache_duration": 60},
        cache_path=tmp_path / "cache.json",
        shared_cache_path=tmp_path / "shared.json",
        **kwargs,
    )


def _write_shared(tmp_path, response):
    path = tmp_path / "shared.json"
    path.write_text(json.dumps(response.to_dict()), encoding="utf-8")
    return path


def test_usage_segment_prefers_valid_cache(tmp_path, input_data):
    cache = response_to_cache(_response(five=10.0))
    save_cache(cache, tmp_path / "cache.json")
    _write_shared(tmp_path, _response(five=90.0))
    data = _segment(tmp_path).collect(input_data)
    assert data.primary == "10% @?"


def test_usage_segment_uses_fresh_shared_cache(tmp_path, input_data):
    save_cache(_old_cache(five=10.0), tmp_path / "cache.json")
    _write_shared(tmp_path, _response(five=90.0))
    data = _segment(tmp_path).collect(input_data)
    assert data.primary == "90% @?"
    assert load_cache(tmp_path / "cache.json").five_hour_utilization == 90.0


def test_usage_segment_falls_back_to_stale_cache(tmp_path, input_data):
    save_cache(_old_cache(five=10.0), tmp_path / "cache.json")
    data = _segment(tmp_path).collect(input_data)
    assert data.primary == "10% @?"


def test_usage_segment_falls_back_to_stale_shared_cache(tmp_path, input_data):
    shared = _write_shared(tmp_path, _response(five=30.0))
    old = time.time() - 3600
    os.utime(shared, (old, old))
    data = _segment(tmp_path).collect(input_data)
    assert data.primary == "30% @?"
    assert load_cache(tmp_path / "cache.json").five_hour_utilization == 30.0


def test_usage_segment_nothing_available(tmp_path, input_data):
    assert _segment(tmp_path).collect(input_data) is None


def _serve(status, payload, seen):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen.append((self.path, self.headers.get("Authorization")))
            body = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture
def no_proxy_env(monkeypatch):
    for name in ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize("status", [200])
def test_usage_segment_fetches_from_api(tmp_path, input_data, no_proxy_env, status):
    seen = []
    response = _response(five=55.0, seven=65.0)
    server = _serve(status, response.to_dict(), seen)
    try:
        segment = UsageSegment(
            options={
                "api_base_url": f"http://127.0.0.1:{server.server_address[1]}",
                "timeout": 5,
            },
            cache_path=tmp_path / "cache.json",
            shared_cache_path=tmp_path / "shared.json",
            token="token",
        )
        data = segment.collect(input_data)
    finally:
        server.shutdown()
        server.server_close()
    assert data.primary == "55% @?"
    assert seen == [("/api/oauth/usage", "Bearer token")]
    assert load_cache(tmp_path / "cache.json").seven_day_utilization == 65.0
    shared = json.loads((tmp_path / "shared.json").read_text(encoding="utf-8"))
    assert ApiUsageResponse.from_dict(shared) == response


def test_usage_segment_api_error_yields_nothing(tmp_path, input_data, no_proxy_env):
    seen = []
    server = _serve(500, {"error": "boom"}, seen)
    try:
        segment = UsageSegment(
            options={"api_base_url": f"http://127.0.0.1:{server.server_address[1]}"},
            cache_path=tmp_path / "cache.json",
            shared_cache_path=tmp_path / "shared.json",
            token="token",
        )
        data = segment.collect(input_data)
    finally:
        server.shutdown()
        server.server_close()
    assert data is None
    assert len(seen) == 1
    assert not (tmp_path / "cache.json").exists()