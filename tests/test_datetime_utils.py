from datetime import datetime, timezone

from datetime_utils import ensure_utc, parse_timestamp, to_wire, utc_now


def test_parse_timestamp_variants():
    expected = datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-01T10:30:00Z") == expected
    assert parse_timestamp("2024-03-01T12:30:00+02:00") == expected
    assert parse_timestamp("2024-03-01T10:30:00") == expected
    assert parse_timestamp(datetime(2024, 3, 1, 10, 30)) == expected


def test_parse_timestamp_fraction_padding():
    parsed = parse_timestamp("2024-03-01T10:30:00.5Z")
    assert parsed.microsecond == 500000
    parsed = parse_timestamp("2024-03-01T10:30:00.1234567-01:00")
    assert parsed.microsecond == 123456
    assert parsed.hour == 11


def test_parse_timestamp_rejects_garbage():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None


def test_to_wire_milliseconds_round_trip():
    now = utc_now()
    assert now.microsecond % 1000 == 0
    text = to_wire(now)
    assert text.endswith("Z")
    assert parse_timestamp(text) == now
    assert to_wire(None) is None


def test_ensure_utc_converts_offsets():
    value = datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc)
    assert ensure_utc(datetime(2024, 1, 1, 3, 0)) == value
    assert ensure_utc(None) is None
