"""
Meeting-time parsing.

Catalog meeting strings look like:

    "MW 10:10AM-11:25AM"
    "F 09:05AM-09:55AM"

They are parsed once, here, into DaySet / TimeRange / Meeting values.
Catalog data is not always clean, so parsing never raises:
- an unreadable clock time resolves to 0 minutes (midnight)
- an unreadable meeting string resolves to None and is skipped by callers
Both cases are logged as data-quality warnings.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Iterable, Optional, Union

from classplanner.model import DaySet, Meeting, TimeRange

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"(\d+):(\d+)(AM|PM)")


def parse_time(text: str) -> int:
    """
    Convert a 12-hour clock string like '10:10AM' to minutes since midnight.

    12:00AM -> 0, 12:00PM -> 720, 11:59PM -> 1439.
    Malformed input returns 0 instead of raising.
    """
    match = _TIME_RE.search(text or "")
    if not match:
        logger.warning("Unparseable time %r, using 00:00", text)
        return 0

    hours = int(match.group(1)) % 12
    minutes = int(match.group(2))
    if match.group(3) == "PM":
        hours += 12
    return hours * 60 + minutes


def parse_time_range(text: str) -> Optional[TimeRange]:
    """
    Parse '10:10AM-11:25AM'. Returns None if there is no '-' separator.
    """
    if "-" not in text:
        return None
    start, end = text.split("-", 1)
    return TimeRange(
        start=start,
        end=end,
        start_minutes=parse_time(start),
        end_minutes=parse_time(end),
    )


def parse_meeting(raw: str) -> Optional[Meeting]:
    """
    Parse one wire-format meeting string into a Meeting.

    Returns None when the string has no day/time separator or no time range.
    """
    parts = (raw or "").split(" ")
    if len(parts) < 2:
        logger.warning("Skipping malformed meeting %r (no day/time separator)", raw)
        return None

    days, time = parts[0], parts[1]
    time_range = parse_time_range(time)
    if time_range is None:
        logger.warning("Skipping malformed meeting %r (no time range)", raw)
        return None

    return Meeting(raw=raw, days=DaySet.parse(days), time=time_range)


def parse_meetings(value: Union[str, Iterable[str], None]) -> tuple[Meeting, ...]:
    """
    Parse a list of meeting strings, or its JSON-serialised form as stored.

    Unreadable entries are dropped.
    """
    raws = load_meeting_strings(value)
    out: list[Meeting] = []
    for raw in raws:
        meeting = parse_meeting(raw)
        if meeting is not None:
            out.append(meeting)
    return tuple(out)


def load_meeting_strings(value: Union[str, Iterable[str], None]) -> tuple[str, ...]:
    """
    Normalize the stored meetings field to a tuple of strings.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Meetings field is not valid JSON: %r", value)
            return ()
        if not isinstance(value, list):
            return ()
    return tuple(str(x) for x in value if isinstance(x, str))
