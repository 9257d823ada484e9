"""Parse the human-readable date phrases accepted by --start, --end and --expires.

Supported forms (case-insensitive):

- ISO dates and datetimes: ``2024-01-31``, ``2024-01-31 17:30``,
  ``2024-01-31T17:30:00+02:00`` (slashes also accepted: ``2024/01/31``)
- Unix epoch seconds: ``1706745600``
- ``now``, ``today``, ``tomorrow``, ``yesterday``, optionally followed by
  ``at HH:MM``
- Relative offsets: ``3 days ago``, ``in 2 hours`` (minutes, hours, days, weeks)

All results are naive datetimes in the local time zone.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

_UNITS = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}

_EPOCH_RE = re.compile(r"^\d{9,11}(\.\d+)?$")
_AGO_RE = re.compile(r"^(\d+)\s+(minute|hour|day|week)s?\s+ago$")
_IN_RE = re.compile(r"^in\s+(\d+)\s+(minute|hour|day|week)s?$")
_DAY_RE = re.compile(r"^(today|tomorrow|yesterday)(?:\s+at\s+(\d{1,2}):(\d{2}))?$")

_DAY_OFFSETS = {"today": 0, "tomorrow": 1, "yesterday": -1}


def _parse_iso(text: str) -> datetime | None:
    try:
        dt = datetime.fromisoformat(text.replace("/", "-"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def parse_date_phrase(text: str | None, now: datetime | None = None) -> datetime | None:
    """Resolve a date phrase to a local datetime.

    Args:
        text: The phrase as typed on the command line.
        now: Reference time for relative phrases.  Defaults to the current
            local time.

    Returns:
        The resolved datetime, or None if *text* is empty or not understood.
    """
    if text is None:
        return None
    phrase = " ".join(text.strip().lower().split())
    if not phrase:
        return None
    now = now or datetime.now()

    if phrase == "now":
        return now

    if _EPOCH_RE.match(phrase):
        return datetime.fromtimestamp(float(phrase))

    match = _DAY_RE.match(phrase)
    if match:
        day, hour, minute = match.groups()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        result = midnight + timedelta(days=_DAY_OFFSETS[day])
        if hour is not None:
            if int(hour) > 23 or int(minute) > 59:
                return None
            result = result.replace(hour=int(hour), minute=int(minute))
        return result

    match = _AGO_RE.match(phrase)
    if match:
        return now - int(match.group(1)) * _UNITS[match.group(2)]

    match = _IN_RE.match(phrase)
    if match:
        return now + int(match.group(1)) * _UNITS[match.group(2)]

    return _parse_iso(text.strip())
