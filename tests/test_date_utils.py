from datetime import UTC, datetime

from date_utils import (
    ensure_utc,
    get_current_utc_time,
    now_epoch_ms,
    parse_timestamp,
    to_epoch_ms,
)


def test_parse_timestamp_handles_empty_and_invalid() -> None:
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp("not-a-date") is None


def test_parse_timestamp_normalizes_to_utc() -> None:
    parsed = parse_timestamp("2024-01-01T00:00:00-05:00")
    assert parsed is not None
    assert parsed.tzinfo == UTC
    assert parsed.hour == 5


def test_parse_timestamp_handles_datetime_input() -> None:
    dt = datetime(2024, 5, 15, 10, 30, 0, tzinfo=UTC)
    assert parse_timestamp(dt) == dt
    naive = parse_timestamp(datetime(2024, 5, 15, 10, 30, 0))
    assert naive is not None
    assert naive.tzinfo == UTC


def test_ensure_utc_handles_naive_datetime() -> None:
    normalized = ensure_utc(datetime(2024, 1, 1, 12, 0, 0))
    assert normalized is not None
    assert normalized.tzinfo == UTC
    assert normalized.hour == 12
    assert ensure_utc(None) is None


def test_get_current_utc_time_returns_utc() -> None:
    assert get_current_utc_time().tzinfo == UTC


def test_epoch_ms_conversions() -> None:
    assert to_epoch_ms("2024-05-01T08:00:00.000Z") == 1714550400000
    assert to_epoch_ms(None) is None


def test_now_epoch_ms_tracks_wall_clock() -> None:
    before = int(datetime.now(UTC).timestamp() * 1000)
    now = now_epoch_ms()
    after = int(datetime.now(UTC).timestamp() * 1000)
    assert before <= now <= after
