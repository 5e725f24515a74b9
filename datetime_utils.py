from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union


UTC = timezone.utc


def utc_now_precise() -> datetime:
    return datetime.now(UTC)


def utc_now() -> datetime:
    # Millisecond precision so values survive a round trip through the wire format.
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _normalize_fraction(s: str) -> str:
    """Pad or trim fractional seconds to 6 digits."""

    digits = s[:6]
    if len(digits) < 6:
        digits = digits + "0" * (6 - len(digits))
    return digits


def parse_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Parse an ISO-8601 / RFC3339 value into a timezone-aware UTC datetime.

    Datetimes pass through (naive ones are taken as UTC). Unparsable input
    returns ``None``.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if not text:
        return None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    if "." in text:
        head, tail = text.split(".", 1)
        tz_sign = ""
        tz_suffix = ""
        if "+" in tail:
            frac, tz_suffix = tail.split("+", 1)
            tz_sign = "+"
        elif "-" in tail:
            frac, tz_suffix = tail.split("-", 1)
            tz_sign = "-"
        else:
            frac = tail
        text = f"{head}.{_normalize_fraction(frac)}{tz_sign}{tz_suffix}"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_utc(dt)


def to_wire(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as UTC ISO-8601 with millisecond precision."""

    value = ensure_utc(dt)
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "UTC",
    "ensure_utc",
    "parse_timestamp",
    "to_wire",
    "utc_now",
    "utc_now_precise",
]
