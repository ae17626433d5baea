"""
Conflict detection.

Two meetings conflict if their day patterns share a day AND their time
ranges overlap.
Overlap rule:
    start < other_end AND end > other_start
so back-to-back meetings (11:25 end, 11:25 start) do not conflict.

Detection is fail-open: unreadable meetings count as "no conflict", since a
detector problem must never block a schedule action.
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

from classplanner.meetings import parse_meeting
from classplanner.model import Conflict, Course, Meeting

logger = logging.getLogger(__name__)

MeetingLike = Union[str, Meeting]


def _as_meeting(value: MeetingLike) -> Meeting | None:
    if isinstance(value, Meeting):
        return value
    return parse_meeting(value)


def meetings_conflict(meeting1: MeetingLike, meeting2: MeetingLike) -> bool:
    """
    Check if two meetings conflict.

    Example: "MW 10:10AM-11:25AM" vs "TR 02:55PM-04:10PM" -> False
    """
    try:
        m1 = _as_meeting(meeting1)
        m2 = _as_meeting(meeting2)
        if m1 is None or m2 is None:
            return False
        return m1.overlaps(m2)
    except Exception:
        logger.exception("Error checking meeting conflict: %r vs %r", meeting1, meeting2)
        return False


def _pair_conflicts(course1: Course, course2: Course) -> list[Conflict]:
    out: list[Conflict] = []
    for m1 in course1.meetings:
        for m2 in course2.meetings:
            if meetings_conflict(m1, m2):
                out.append(
                    Conflict(
                        course1=course1.full_label,
                        course2=course2.full_label,
                        reason=f"{m1.raw} conflicts with {m2.raw}",
                    )
                )
    return out


def find_conflicts(courses: Sequence[Course]) -> list[Conflict]:
    """
    Find all conflicts between course pairs (i<j), one per overlapping meeting pair.

    Courses are not deduplicated: two sections of the same course, or the
    same record twice, are compared like any other pair.
    """
    conflicts: list[Conflict] = []

    # O(n^2 * m^2) is fine for typical schedule sizes
    for i in range(len(courses)):
        for j in range(i + 1, len(courses)):
            conflicts.extend(_pair_conflicts(courses[i], courses[j]))

    return conflicts


def conflicts_with(course: Course, others: Sequence[Course]) -> list[Conflict]:
    """
    Conflicts between one course and each course in `others`.
    """
    conflicts: list[Conflict] = []
    for other in others:
        conflicts.extend(_pair_conflicts(course, other))
    return conflicts
