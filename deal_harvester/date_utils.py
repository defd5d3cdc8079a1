"""Date and time helpers for portal markup.

Portals render dates as ``Fri, 10 Oct 2025`` and times as ``07:15`` (or
``7:15 pm``), with next-day arrivals marked ``+1``.  Airport timezones come
either as IANA names (``Europe/Vienna``), fixed offsets (``UTC+08:00``) or an
"unknown" sentinel, which is treated as UTC.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

HEADING_DATE_RE = re.compile(
    r"([A-Za-z]{3}),\s+(\d{1,2})\s+([A-Za-z]{3})[A-Za-z]*\s+(\d{4})"
)
TIME_24H_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
TIME_12H_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([aApP][mM])$")
DAY_MARKER_RE = re.compile(r"([+-])\s*(\d+)")
UTC_OFFSET_RE = re.compile(r"^UTC([+-])(\d{2}):(\d{2})$")

UNKNOWN_ZONES = {"", "\\N", "null", "None"}

_MONTHS = [
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
]


def parse_heading_date(text: str | None) -> Optional[date]:
    """Return the first ``<Weekday>, <Day> <Month> <Year>`` date in *text*."""
    if not text:
        return None
    m = HEADING_DATE_RE.search(text)
    if not m:
        return None
    _, day, month_name, year = m.groups()
    month_key = month_name.lower()[:3]
    if month_key not in _MONTHS:
        return None
    try:
        return date(int(year), _MONTHS.index(month_key) + 1, int(day))
    except ValueError:
        return None


def format_heading_date(d: date) -> str:
    return d.strftime("%a, %d %b %Y")


def parse_time(text: str) -> time:
    """Parse ``HH:MM`` or ``h:mm am/pm``; raise ``ValueError`` otherwise."""
    value = (text or "").strip()
    m = TIME_24H_RE.match(value)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
    else:
        m = TIME_12H_RE.match(value)
        if not m:
            raise ValueError(f"Unrecognised time: {text!r}")
        hours, minutes = int(m.group(1)), int(m.group(2))
        period = m.group(3).lower()
        if hours == 12:
            hours = 0 if period == "am" else 12
        elif period == "pm":
            hours += 12
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {text!r}")
    return time(hours, minutes)


def strip_day_marker(text: str) -> tuple[str, int]:
    """Split ``"07:15+1"`` into ``("07:15", 1)``."""
    value = (text or "").strip()
    m = DAY_MARKER_RE.search(value)
    if not m:
        return value, 0
    delta = int(m.group(2))
    if m.group(1) == "-":
        delta = -delta
    return DAY_MARKER_RE.sub("", value, count=1).strip(), delta


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def resolve_tz(zone: str | None) -> tzinfo:
    """Map an airport timezone field to a ``tzinfo``."""
    if zone is None or zone.strip() in UNKNOWN_ZONES:
        return timezone.utc
    value = zone.strip()
    m = UTC_OFFSET_RE.match(value)
    if m:
        sign, hh, mm = m.groups()
        offset = timedelta(hours=int(hh), minutes=int(mm))
        if sign == "-":
            offset = -offset
        return timezone(offset)
    if value in ("UTC", "GMT", "Z"):
        return timezone.utc
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", value)
        return timezone.utc


def localize(d: date | None, t: time, zone: str | None) -> datetime:
    """Combine a local wall-clock date and time at an airport.

    A missing date degrades to today's date rather than failing.
    """
    if d is None:
        d = datetime.now(timezone.utc).date()
    return datetime.combine(d, t, tzinfo=resolve_tz(zone))


def encode_for_id(d: date | None, t: time) -> str:
    """Timezone-free ``YYYYMMDDHHMM`` stamp used inside identifiers."""
    if d is None:
        d = datetime.now(timezone.utc).date()
    return datetime.combine(d, t).strftime("%Y%m%d%H%M")


def parse_iso_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def format_portal_date(value: str | None, portal: str) -> str:
    """Kiwi expects ``dd/MM/yyyy``; sky takes ISO dates unchanged."""
    if not value:
        return ""
    if portal != "kiwi":
        return value
    parsed = parse_iso_date(value)
    if parsed is None:
        logger.warning("Could not parse date for kiwi: %s", value)
        return value
    return parsed.strftime("%d/%m/%Y")


def is_past(value: str, today: date | None = None) -> bool:
    parsed = parse_iso_date(value)
    if parsed is None:
        return False
    return parsed < (today or date.today())


__all__ = [
    "parse_heading_date",
    "format_heading_date",
    "parse_time",
    "strip_day_marker",
    "add_days",
    "resolve_tz",
    "localize",
    "encode_for_id",
    "parse_iso_date",
    "format_portal_date",
    "is_past",
]
