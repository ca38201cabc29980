"""Date helpers for receipt parsing and formatting."""

import re
from datetime import date, datetime

from dateutil import parser as dateutil_parser

# "HH:MM[:SS][ AM|PM]" shared by every date pattern
_TIME_SUFFIX = r"(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\s*(AM|PM))?)?"

# Tried in order; the first pattern that yields a valid datetime wins.
DATE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("ymd", re.compile(r"(?<!\d)(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})" + _TIME_SUFFIX, re.IGNORECASE)),
    ("dmy", re.compile(r"(?<!\d)(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})" + _TIME_SUFFIX, re.IGNORECASE)),
]

# "YY/MM/DD" as printed by many POS terminals; only trusted for the current year.
SHORT_YEAR_FIRST_PATTERN = re.compile(r"(\d{2})[/.-](\d{1,2})[/.-](\d{1,2})" + _TIME_SUFFIX, re.IGNORECASE)

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> datetime | None:
    """Build a datetime, rejecting out-of-range components instead of wrapping them."""
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def _parse_time_groups(match: re.Match[str]) -> tuple[int, int, int]:
    """Read hour/minute/second from groups 4-7 of a date pattern match."""
    hour = int(match.group(4)) if match.group(4) else 0
    minute = int(match.group(5)) if match.group(5) else 0
    second = int(match.group(6)) if match.group(6) else 0
    meridiem = match.group(7).upper() if match.group(7) else None

    if meridiem == "PM" and hour < 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    return hour, minute, second


def _resolve_day_month(first: int, second: int) -> tuple[int, int]:
    """
    Decide which of two date components is the day.

    A component above 12 can only be a day. When both are <= 12 the input is
    ambiguous and day-first wins.

    Returns:
        (day, month)
    """
    if first > 12 and second <= 12:
        return first, second
    if second > 12 and first <= 12:
        return second, first
    return first, second


def parse_flexible_datetime(
    value: str,
    *,
    prefer_current_year: bool = False,
    current_year: int | None = None,
) -> datetime | None:
    """
    Parse a loosely formatted receipt date/time.

    Strategy order:
    1. With prefer_current_year, a whole-string "YY/MM/DD [time]" whose year
       equals the current two-digit year
    2. "YYYY/M/D [time]"
    3. "D/M/YY(YY) [time]" with day/month tie-break
    4. Generic date string parse

    Args:
        value: Raw text, e.g. from OCR or a cloud extraction result
        prefer_current_year: Set for values read from a live scan
        current_year: Override for the current year (defaults to today)

    Returns:
        Naive local datetime, or None if the text is not a date
    """
    normalized = re.sub(r"\s+", " ", value or "").strip()
    if not normalized:
        return None

    if prefer_current_year:
        year_now = current_year if current_year is not None else date.today().year
        match = SHORT_YEAR_FIRST_PATTERN.fullmatch(normalized)
        if match and int(match.group(1)) == year_now % 100:
            hour, minute, second = _parse_time_groups(match)
            built = _build_datetime(
                2000 + int(match.group(1)),
                int(match.group(2)),
                int(match.group(3)),
                hour,
                minute,
                second,
            )
            if built:
                return built

    for order, pattern in DATE_PATTERNS:
        match = pattern.search(normalized)
        if not match:
            continue

        if order == "ymd":
            year = int(match.group(1))
            month = int(match.group(2))
            day = int(match.group(3))
        else:
            year = int(match.group(3))
            if year < 100:
                year += 2000
            day, month = _resolve_day_month(int(match.group(1)), int(match.group(2)))

        hour, minute, second = _parse_time_groups(match)
        built = _build_datetime(year, month, day, hour, minute, second)
        if built:
            return built

    try:
        parsed = dateutil_parser.parse(normalized)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_datetime_local(value: datetime) -> str:
    """Render the canonical "YYYY-MM-DD HH:MM:SS" form."""
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )


def normalize_receipt_datetime(value: str) -> str | None:
    """Normalize a stored or imported date/time string."""
    parsed = parse_flexible_datetime(value)
    if parsed is None:
        return None
    return format_datetime_local(parsed)


def normalize_receipt_datetime_from_scan(value: str, current_year: int | None = None) -> str | None:
    """Normalize a date/time read from a live scan, where the current year is most likely."""
    parsed = parse_flexible_datetime(value, prefer_current_year=True, current_year=current_year)
    if parsed is None:
        return None
    return format_datetime_local(parsed)


def start_of_day(value: date) -> datetime:
    """Midnight at the start of the given calendar date."""
    return datetime(value.year, value.month, value.day)


def end_of_day(value: date) -> datetime:
    """Last representable instant of the given calendar date."""
    return datetime(value.year, value.month, value.day, 23, 59, 59, 999999)
