import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

from errors import ParseError

logger = logging.getLogger("timestamps")

# Numbers below this are epoch seconds, anything at or above is already
# epoch milliseconds. 1e12 ms is 2001-09-09; 1e12 s is far past year 30000.
MILLISECONDS_THRESHOLD = 1e12

# Explicit offset or Zulu marker at the end of a date-time string
OFFSET_PATTERN = re.compile(r"(?:[+-]\d{2}:?\d{2}|Z)$", re.IGNORECASE)

COMPACT_OFFSET_PATTERN = re.compile(r"([+-]\d{2})(\d{2})$")

# UTC, UTC+08:00, UTC-05:30, UTC+0530, UTC+08
TIMEZONE_PATTERN = re.compile(r"^UTC(?:([+-])(\d{2})(?::?(\d{2}))?)?$")

TimestampInput = Union[int, float, str, datetime, None]


@dataclass(frozen=True)
class TimezoneOffset:
    """A fixed offset from UTC parsed from a ``UTC±HH:MM`` setting."""

    sign: int = 1
    hours: int = 0
    minutes: int = 0

    def __post_init__(self):
        if self.sign not in (1, -1):
            raise ParseError(f"Invalid offset sign: {self.sign}")
        if not 0 <= self.hours <= 23:
            raise ParseError(f"Offset hours out of range: {self.hours}")
        if not 0 <= self.minutes <= 59:
            raise ParseError(f"Offset minutes out of range: {self.minutes}")

    @property
    def total_minutes(self) -> int:
        return self.sign * (self.hours * 60 + self.minutes)

    @property
    def suffix(self) -> str:
        return f"{'+' if self.sign == 1 else '-'}{self.hours:02d}:{self.minutes:02d}"

    @property
    def tzinfo(self) -> timezone:
        return timezone(timedelta(minutes=self.total_minutes))


UTC_OFFSET = TimezoneOffset()


def parse_timezone(text: Optional[str]) -> Optional[TimezoneOffset]:
    """
    Parse a configured timezone string.

    Args:
        text: Setting such as ``UTC``, ``UTC+08:00`` or ``UTC-0530``

    Returns:
        The parsed offset, or None when the text is not in ``UTC±HH:MM`` form

    Raises:
        ParseError: The text matches the form but hours or minutes are out of range
    """
    match = TIMEZONE_PATTERN.match((text or "").strip())
    if not match:
        return None

    sign = -1 if match.group(1) == "-" else 1
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    return TimezoneOffset(sign=sign, hours=hours, minutes=minutes)


def _resolve_offset(tz: Union[str, TimezoneOffset, None]) -> Optional[TimezoneOffset]:
    if tz is None:
        return UTC_OFFSET
    if isinstance(tz, TimezoneOffset):
        return tz
    return parse_timezone(tz)


def _as_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _canonical_offset(text: str) -> str:
    # fromisoformat wants +HH:MM, not Z or +HHMM
    if text[-1] in "zZ":
        return text[:-1] + "+00:00"
    return COMPACT_OFFSET_PATTERN.sub(r"\1:\2", text)


def _to_ms(parsed: datetime) -> float:
    # Naive values are read in the host's local time by timestamp()
    try:
        return parsed.timestamp() * 1000
    except (ValueError, OverflowError, OSError):
        return math.nan


def _parse_iso(text: str) -> float:
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return math.nan
    return _to_ms(parsed)


def _parse_rfc2822(text: str, offset: Optional[TimezoneOffset]) -> float:
    # Mail header dates: "Mon, 01 Jan 2024 10:00:00 +0800" or "... GMT"
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return math.nan
    if parsed.tzinfo is None and offset is not None:
        parsed = parsed.replace(tzinfo=offset.tzinfo)
    return _to_ms(parsed)


def normalize_timestamp(value: TimestampInput,
                        tz: Union[str, TimezoneOffset, None] = "UTC") -> float:
    """
    Convert a message timestamp into epoch milliseconds.

    Accepts epoch seconds, epoch milliseconds, ISO or RFC 2822 strings
    carrying their own offset, and naive ``YYYY-MM-DD HH:MM:SS`` strings
    which are read in the configured timezone. An explicit offset in the
    value always wins over ``tz``.

    Args:
        value: The raw timestamp as delivered by the provider
        tz: Configured timezone (``UTC``, ``UTC+08:00``...) or a parsed offset

    Returns:
        Epoch milliseconds as a float, or ``math.nan`` when the value cannot be parsed
    """
    if isinstance(value, datetime) and value.tzinfo is not None:
        return _to_ms(value)

    number = _as_number(value)
    if number is not None:
        if number < MILLISECONDS_THRESHOLD:
            return number * 1000
        return number

    if not isinstance(value, datetime):
        text = str(value if value is not None else "").strip()
        if not text:
            return math.nan
        if OFFSET_PATTERN.search(text):
            ts = _parse_iso(_canonical_offset(text))
            if math.isnan(ts):
                ts = _parse_rfc2822(text, UTC_OFFSET)
            return ts

    try:
        offset = _resolve_offset(tz)
    except ParseError as e:
        logger.debug(f"Unusable timezone {tz!r}: {e}")
        return math.nan

    if isinstance(value, datetime):
        if offset is not None:
            value = value.replace(tzinfo=offset.tzinfo)
        return _to_ms(value)

    if offset is None:
        # Unrecognised timezone setting, fall back to host local time
        ts = _parse_iso(text)
    else:
        iso_like = text.replace(" ", "T", 1)
        ts = _parse_iso(f"{iso_like}{offset.suffix}")

    if math.isnan(ts):
        ts = _parse_rfc2822(text, offset)
    return ts


def now_ms() -> float:
    return time.time() * 1000


def age_seconds(value: TimestampInput,
                tz: Union[str, TimezoneOffset, None] = "UTC",
                now: Optional[float] = None) -> float:
    """Seconds elapsed since ``value``; nan when the timestamp is unknown."""
    ts = normalize_timestamp(value, tz)
    current = now_ms() if now is None else now
    return (current - ts) / 1000


def is_within_minutes(value: TimestampInput,
                      minutes: float = 3,
                      tz: Union[str, TimezoneOffset, None] = "UTC",
                      now: Optional[float] = None) -> bool:
    """
    Check whether a timestamp falls inside the recency window.

    Unparsable timestamps are never recent. Timestamps in the future
    (clock skew between us and the provider) are recent.

    Args:
        value: The raw timestamp
        minutes: Window size in minutes
        tz: Configured timezone for naive strings
        now: Current time in epoch milliseconds, defaults to the wall clock

    Returns:
        True if the message arrived within the last ``minutes`` minutes
    """
    ts = normalize_timestamp(value, tz)
    if math.isnan(ts):
        return False
    current = now_ms() if now is None else now
    return current - ts <= minutes * 60 * 1000
