"""
Due-date normalization.

Turns a free-form due phrase ("tomorrow at 5pm", "Friday", "September 18th
at 10.09 p.m.", "9/20") into an ISO-8601 timestamp. Every computation happens
in the single configured zone (config.TIMEZONE), never the caller's local
zone. Normalization never fails: unparseable phrases fall back to tomorrow at
the default due hour.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import config

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday",
)

MONTHS = (
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
)

# am / pm / a.m. / p.m / a m
_MERIDIEM = r"([ap])\.?\s?m\.?(?![a-z])"

# Order matters - more specific patterns first
_TIME_PATTERNS = (
    # Decimal time: "10.09 p.m."
    re.compile(r"\b(\d{1,2})\.(\d{2})\s*" + _MERIDIEM, re.IGNORECASE),
    # Colon time, meridiem optional: "11:30 am", "17:00"
    re.compile(r"\b(\d{1,2}):(\d{2})(?:\s*" + _MERIDIEM + r")?", re.IGNORECASE),
    # Space separated: "5 10 p.m."
    re.compile(r"\b(\d{1,2})\s+(\d{2})\s*" + _MERIDIEM, re.IGNORECASE),
    # Bare hour: "11 am", "11 a.m.", "5pm"
    re.compile(r"\b(\d{1,2})()\s*" + _MERIDIEM, re.IGNORECASE),
)

_WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE)
_MONTH_DAY_RE = re.compile(
    r"\b(" + "|".join(MONTHS) + r")\s+(\d{1,2})(?:st|nd|rd|th)?\b",
    re.IGNORECASE,
)
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?\b")


def target_zone() -> ZoneInfo:
    """Zone every due date is computed and rendered in."""
    return ZoneInfo(config.TIMEZONE)


def now_in_zone(now: Optional[datetime] = None) -> datetime:
    """
    Current instant expressed in the target zone.

    Naive datetimes are taken to already be target-zone wall time.
    """
    tz = target_zone()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def extract_time(text: str) -> Optional[Tuple[int, int]]:
    """
    Extract a time of day from text.

    Returns:
        (hour, minute) in 24-hour form, or None if no usable time is present

    Examples:
        >>> extract_time("tomorrow at 5pm")
        (17, 0)
        >>> extract_time("September 18th at 10.09 p.m.")
        (22, 9)
        >>> extract_time("12 a.m.")
        (0, 0)
    """
    lower = text.lower()

    if "midnight" in lower:
        return (0, 0)
    if "noon" in lower:
        return (12, 0)

    for pattern in _TIME_PATTERNS:
        for match in pattern.finditer(lower):
            hours = int(match.group(1))
            minutes = int(match.group(2)) if match.group(2) else 0
            period = (match.group(3) or "").lower()

            if period == "p" and hours != 12:
                hours += 12
            elif period == "a" and hours == 12:
                hours = 0

            if 0 <= hours <= 23 and 0 <= minutes <= 59:
                return (hours, minutes)
            logger.debug("Discarding out-of-range time", extra={"raw": match.group(0)})

    return None


def _at(day: date, time_of_day: Tuple[int, int]) -> str:
    hours, minutes = time_of_day
    due = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=target_zone())
    return due.isoformat(timespec="milliseconds")


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_due_text(due_text: str, now: Optional[datetime] = None) -> str:
    """
    Convert a due phrase into an ISO-8601 timestamp in the target zone.

    Rules, first match wins:
    - "today"/"tonight"
    - "tomorrow"
    - weekday name (same weekday without a time rolls a full week)
    - month name + day number
    - M/D or M/D/YY(YY)
    - "next week"
    - fallback: tomorrow

    A missing time defaults to config.DEFAULT_DUE_HOUR:00.

    Args:
        due_text: Free-form due phrase
        now: Reference instant (defaults to the current time)

    Returns:
        ISO-8601 string with millisecond precision and zone offset
    """
    current = now_in_zone(now)
    today = current.date()
    default_time = (config.DEFAULT_DUE_HOUR, 0)
    text = (due_text or "").strip()
    lower = text.lower()
    explicit_time = extract_time(lower) if lower else None
    time_of_day = explicit_time or default_time

    if "today" in lower or "tonight" in lower:
        return _at(today, time_of_day)

    if "tomorrow" in lower:
        return _at(today + timedelta(days=1), time_of_day)

    weekday_match = _WEEKDAY_RE.search(lower)
    if weekday_match:
        target = WEEKDAYS.index(weekday_match.group(1).lower())
        days_until = (target - today.weekday()) % 7
        if days_until == 0 and explicit_time is None:
            days_until = 7
        return _at(today + timedelta(days=days_until), time_of_day)

    month_match = _MONTH_DAY_RE.search(lower)
    if month_match:
        month = MONTHS.index(month_match.group(1).lower()) + 1
        day = _safe_date(today.year, month, int(month_match.group(2)))
        if day:
            return _at(day, time_of_day)

    numeric_match = _NUMERIC_DATE_RE.search(lower)
    if numeric_match:
        month, day_num, year = numeric_match.groups()
        if year is None:
            full_year = today.year
        elif len(year) == 2:
            full_year = 2000 + int(year)
        else:
            full_year = int(year)
        day = _safe_date(full_year, int(month), int(day_num))
        if day:
            return _at(day, time_of_day)

    if "next week" in lower:
        return _at(today + timedelta(days=7), time_of_day)

    logger.debug("No date phrase recognized, defaulting to tomorrow", extra={"due_text": text})
    return _at(today + timedelta(days=1), default_time)


def iso_to_epoch_ms(iso: str) -> str:
    """Epoch milliseconds, string-encoded, for an ISO-8601 timestamp."""
    due = datetime.fromisoformat(iso)
    if due.tzinfo is None:
        due = due.replace(tzinfo=target_zone())
    return str(int(round(due.timestamp() * 1000)))
