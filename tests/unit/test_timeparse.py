"""Tests for time expression parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from loki_mcp.models.errors import ErrorCode, InvalidTimeExpression
from loki_mcp.timeparse import resolve_time, resolve_time_range


class TestResolveTime:
    """Tests for resolve_time."""

    def test_now_returns_reference(self, now: datetime):
        """'now' resolves to the reference time itself."""
        assert resolve_time("now", now) == now

    @pytest.mark.parametrize(
        "expr, seconds",
        [
            ("-30s", 30),
            ("-0s", 0),
            ("-5m", 300),
            ("-90m", 5400),
            ("-1h", 3600),
            ("-24h", 86400),
            ("-2d", 172800),
        ],
    )
    def test_relative_offsets(self, now: datetime, expr: str, seconds: int):
        """Negative offsets subtract the exact duration."""
        assert resolve_time(expr, now) == now - timedelta(seconds=seconds)

    def test_rfc3339_with_z(self, now: datetime):
        """RFC3339 with Z suffix is UTC."""
        result = resolve_time("2025-01-27T10:00:00Z", now)
        assert result == datetime(2025, 1, 27, 10, 0, 0, tzinfo=timezone.utc)

    def test_rfc3339_with_offset(self, now: datetime):
        """Explicit offsets are honored."""
        result = resolve_time("2025-01-27T12:00:00+02:00", now)
        assert result == datetime(2025, 1, 27, 10, 0, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_assumed_utc(self, now: datetime):
        """Timestamps without a zone are treated as UTC."""
        result = resolve_time("2025-01-27T10:00:00", now)
        assert result.tzinfo is not None
        assert result == datetime(2025, 1, 27, 10, 0, 0, tzinfo=timezone.utc)

    def test_nanosecond_fraction_truncated(self, now: datetime):
        """Fractions beyond microseconds are accepted and truncated."""
        result = resolve_time("2025-01-27T10:00:00.123456789Z", now)
        assert result == datetime(2025, 1, 27, 10, 0, 0, 123456, tzinfo=timezone.utc)

    def test_millisecond_fraction(self, now: datetime):
        result = resolve_time("2025-01-27T10:00:00.5+00:00", now)
        assert result.microsecond == 500000

    @pytest.mark.parametrize("expr", ["2025-01-27", "20250127T100000Z", "2025-01-27T10:00Z"])
    def test_non_rfc3339_iso_forms_rejected(self, now: datetime, expr: str):
        with pytest.raises(InvalidTimeExpression, match="unsupported time format"):
            resolve_time(expr, now)

    def test_out_of_range_fields(self, now: datetime):
        with pytest.raises(InvalidTimeExpression, match="invalid RFC3339 time"):
            resolve_time("2025-13-45T10:00:00Z", now)

    @pytest.mark.parametrize("expr", ["-99999999999d", "-999999999d", "-99999999999999999999s"])
    def test_offset_out_of_range(self, now: datetime, expr: str):
        """Huge offsets are time errors, not overflow crashes."""
        with pytest.raises(InvalidTimeExpression) as exc_info:
            resolve_time(expr, now)
        assert str(exc_info.value).startswith("invalid time")

    @pytest.mark.parametrize("expr", ["5m", "+5m", "tomorrow", "-5w", "-m", "-1.5h", "yesterday at noon"])
    def test_invalid_expressions(self, now: datetime, expr: str):
        """Anything outside the three grammars is rejected."""
        with pytest.raises(InvalidTimeExpression) as exc_info:
            resolve_time(expr, now)
        assert exc_info.value.code == ErrorCode.INVALID_TIME_EXPRESSION
        assert expr in exc_info.value.message


class TestResolveTimeRange:
    """Tests for resolve_time_range."""

    def test_default_range_is_last_hour(self, now: datetime):
        """No start/end gives [now - 1h, now]."""
        time_range = resolve_time_range(None, None, now)
        assert time_range.end == int(now.timestamp())
        assert time_range.start == int(now.timestamp()) - 3600

    def test_empty_strings_use_defaults(self, now: datetime):
        """Empty strings mean 'not given'."""
        assert resolve_time_range("", "", now) == resolve_time_range(None, None, now)

    def test_relative_start_and_now_share_reference(self, now: datetime):
        """'-5m' to 'now' is exactly 300 seconds."""
        time_range = resolve_time_range("-5m", "now", now)
        assert time_range.end - time_range.start == 300

    def test_nanosecond_properties(self, now: datetime):
        """Nanosecond views multiply seconds by 1e9."""
        time_range = resolve_time_range("-1h", "now", now)
        assert time_range.start_ns == 1737975600 * 1_000_000_000
        assert time_range.end_ns == 1737979200 * 1_000_000_000

    def test_inverted_range_passes_through(self, now: datetime):
        """start after end is not rejected here."""
        time_range = resolve_time_range("now", "-1h", now)
        assert time_range.start > time_range.end

    def test_invalid_start_is_an_error(self, now: datetime):
        """An invalid start is never replaced by the default."""
        with pytest.raises(InvalidTimeExpression) as exc_info:
            resolve_time_range("5m", None, now)
        assert "invalid start time" in str(exc_info.value)

    def test_invalid_end_is_an_error(self, now: datetime):
        """Errors name the failing field."""
        with pytest.raises(InvalidTimeExpression) as exc_info:
            resolve_time_range("-1h", "later", now)
        assert "invalid end time" in str(exc_info.value)

    def test_huge_offset_names_the_field(self, now: datetime):
        with pytest.raises(InvalidTimeExpression) as exc_info:
            resolve_time_range("-99999999999d", None, now)
        assert "invalid start time" in str(exc_info.value)

    def test_uses_current_time_by_default(self):
        """Without a reference the window ends at the current time."""
        before = int(datetime.now(timezone.utc).timestamp())
        time_range = resolve_time_range(None, None)
        after = int(datetime.now(timezone.utc).timestamp())
        assert before <= time_range.end <= after
        assert time_range.end - time_range.start == 3600
