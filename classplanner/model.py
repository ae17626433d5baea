"""
Central data model definitions used across the project.

This module defines the canonical structure of courses, meetings, conflicts
and calendar blocks so that:
- all modules share the same field names
- meeting strings are parsed once at the boundary and compared as values
- the storage layer, the tools and the calendar renderer agree on one shape
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class DaySet:
    """
    Ordered set of single-letter day codes, e.g. "MW" or "TR".
    """

    codes: str

    @classmethod
    def parse(cls, text: str) -> "DaySet":
        # keep first occurrence order, drop duplicates
        seen: list[str] = []
        for ch in text:
            if ch not in seen:
                seen.append(ch)
        return cls("".join(seen))

    def overlaps(self, other: "DaySet") -> bool:
        return bool(set(self.codes) & set(other.codes))

    def __iter__(self):
        return iter(self.codes)

    def __str__(self) -> str:
        return self.codes


@dataclass(frozen=True)
class TimeRange:
    """
    Wall-clock range of one meeting, e.g. 10:10AM-11:25AM.

    The original strings are kept for display, the minute values for math.
    """

    start: str
    end: str
    start_minutes: int
    end_minutes: int

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "TimeRange") -> bool:
        # half-open: back-to-back ranges do not overlap
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Meeting:
    """
    One weekly meeting slot of a section.

    `raw` is the wire format "<days> <start>-<end>" exactly as stored.
    """

    raw: str
    days: DaySet
    time: TimeRange

    def overlaps(self, other: "Meeting") -> bool:
        if not self.days.overlaps(other.days):
            return False
        return self.time.overlaps(other.time)


@dataclass(frozen=True)
class Course:
    """
    One section of a course as stored in the catalog.
    """

    id: str
    subject: str
    catalog_nbr: str
    title: str
    section: str = ""
    class_nbr: int = 0
    component: Optional[str] = None
    status: Optional[str] = None
    credits: Optional[int] = None
    meetings: tuple[Meeting, ...] = ()
    raw_meetings: tuple[str, ...] = ()
    instructors: tuple[str, ...] = ()
    description: str = ""
    prerequisites: str = ""
    restrictions: str = ""
    attributes: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.subject} {self.catalog_nbr}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.subject, self.catalog_nbr)

    @property
    def full_label(self) -> str:
        return f"{self.label}: {self.title}"

    def to_dict(self) -> dict[str, Any]:
        """
        Plain dict for tool output (JSON-serialisable, no embedding text).
        """
        return {
            "id": self.id,
            "subject": self.subject,
            "catalog_nbr": self.catalog_nbr,
            "title": self.title,
            "section": self.section,
            "class_nbr": self.class_nbr,
            "component": self.component,
            "status": self.status,
            "credits": self.credits,
            "meetings": list(self.raw_meetings),
            "instructors": list(self.instructors),
            "description": self.description,
            "prerequisites": self.prerequisites,
            "restrictions": self.restrictions,
            "attributes": list(self.attributes),
            "notes": list(self.notes),
        }


@dataclass
class ScheduleItem:
    """
    One row of a user's schedule: the course plus the entry's own fields.
    """

    course: Course
    notes: Optional[str] = None
    added_at: Optional[datetime] = None


@dataclass(frozen=True)
class Conflict:
    """
    A detected overlap between two meetings of two schedule entries.
    """

    course1: str
    course2: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"course1": self.course1, "course2": self.course2, "reason": self.reason}


@dataclass
class CalendarBlock:
    """
    One positioned block of the weekly calendar.
    """

    course: str
    title: str
    start: str
    end: str
    color: str
    start_minutes: int = 0
    end_minutes: int = 0
    day: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass
class CalendarLayout:
    """
    Day code -> ordered list of positioned blocks.
    """

    days: dict[str, list[CalendarBlock]] = field(default_factory=dict)
    colors: dict[tuple[str, str], str] = field(default_factory=dict)

    def blocks(self) -> list[CalendarBlock]:
        out: list[CalendarBlock] = []
        for day_blocks in self.days.values():
            out.extend(day_blocks)
        return out
