"""
Tool functions exposed to the assistant.

Each tool takes its collaborators (catalog, schedule store, user id, uploader)
as explicit arguments and always returns a value: either a human-readable
string or a JSON-serialisable dict. Nothing here raises: missing courses,
malformed meeting strings, database and upload failures all turn into
messages or degraded output.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError

from classplanner.calendar_svg import DAY_NAMES, DAYS, CalendarConfig, bucket_by_day, generate_svg_calendar
from classplanner.conflicts import conflicts_with, find_conflicts
from classplanner.model import Course
from classplanner.storage import Catalog, ScheduleStore, SearchFilters

logger = logging.getLogger(__name__)

ToolResult = Union[str, dict[str, Any]]
Uploader = Callable[[str], Optional[str]]

VECTOR_ID_PREFIX = "course-"

# sections that only exist alongside a primary section
SECONDARY_COMPONENTS = ("DIS", "LAB")

EMPTY_SCHEDULE_MSG = (
    "Your schedule is empty. Use search_courses to find classes and add_course_to_schedule to add them."
)


class SemanticIndex(Protocol):
    def query(self, text: str, top_k: int) -> list[str]:
        """Return vector ids ("course-<id>") of the nearest courses."""
        ...


# ---------------------------------------------------------------------------
# Catalog tools
# ---------------------------------------------------------------------------


def _keyword_search(catalog: Catalog, query: str, limit: int) -> list[Course]:
    """
    Substring match in id, subject + number, title, instructors or description.
    """
    needle = query.strip().lower()
    out: list[Course] = []
    for c in catalog.all_courses():
        if c.component in SECONDARY_COMPONENTS:
            continue
        hay = " ".join([c.id, c.label, c.title, " ".join(c.instructors), c.description]).lower()
        if needle in hay:
            out.append(c)
            if len(out) >= limit:
                break
    return out


def search_courses(
    catalog: Catalog,
    query: str,
    limit: int = 10,
    index: Optional[SemanticIndex] = None,
) -> ToolResult:
    """
    Natural-language course search.

    With a semantic index the nearest vectors are mapped back to catalog
    records; without one a keyword search over the catalog is used.
    """
    if not (query or "").strip():
        return "Please provide a search query."

    try:
        if index is not None:
            vector_ids = index.query(query, limit)
            logger.info("Semantic search %r: %d matches", query, len(vector_ids))
            course_ids = [vid[len(VECTOR_ID_PREFIX):] if vid.startswith(VECTOR_ID_PREFIX) else vid for vid in vector_ids]
            courses = catalog.get_many(course_ids)
        else:
            courses = _keyword_search(catalog, query, limit)
    # the index is a remote service with its own error types
    except Exception as e:
        logger.exception("Course search failed for %r", query)
        return f"Error searching courses: {e}"

    if not courses:
        return "No courses found matching your query."

    return {"count": len(courses), "courses": [c.to_dict() for c in courses]}


def advanced_course_search(catalog: Catalog, filters: SearchFilters, limit: int = 20) -> ToolResult:
    """
    Structured search: subject, credits, day pattern, instructor, distribution tag, level.
    """
    try:
        courses = catalog.search(filters, limit=limit)
    except SQLAlchemyError as e:
        logger.exception("Advanced search failed")
        return f"Error searching courses: {e}"

    logger.info("Advanced search %s: %d courses", filters.active(), len(courses))

    if not courses:
        return "No courses found matching your filters."

    return {
        "count": len(courses),
        "filters": filters.active(),
        "courses": [c.to_dict() for c in courses],
    }


def get_course_details(
    catalog: Catalog,
    course_id: Optional[str] = None,
    subject: Optional[str] = None,
    catalog_nbr: Optional[str] = None,
) -> ToolResult:
    """
    One section by id, or all sections of a course by subject + catalog number.
    """
    try:
        return _course_details(catalog, course_id, subject, catalog_nbr)
    except SQLAlchemyError as e:
        logger.exception("Loading course details failed")
        return f"Error getting course details: {e}"


def _course_details(
    catalog: Catalog,
    course_id: Optional[str],
    subject: Optional[str],
    catalog_nbr: Optional[str],
) -> ToolResult:
    if course_id:
        course = catalog.get_by_id(course_id)
        if course is None:
            return f"Course {course_id} not found."
        return course.to_dict()

    if subject and catalog_nbr:
        sections = catalog.get_by_key(subject.upper(), catalog_nbr)
        if not sections:
            return f"No sections found for {subject} {catalog_nbr}."
        return {
            "course": f"{subject.upper()} {catalog_nbr}",
            "total_sections": len(sections),
            "sections": [s.to_dict() for s in sections],
        }

    return "Please provide either a course_id or both subject and catalog_nbr."


# ---------------------------------------------------------------------------
# Schedule tools
# ---------------------------------------------------------------------------


def missing_components(
    catalog: Catalog,
    course: Course,
    chosen: Iterable[Course],
) -> dict[str, list[Course]]:
    """
    Components of `course` (LEC, DIS, LAB, ...) with no chosen section yet.

    Returns component -> the sections that could fill it.
    """
    siblings = catalog.get_by_key(course.subject, course.catalog_nbr)
    have = {c.component for c in chosen if c.key == course.key}

    missing: dict[str, list[Course]] = {}
    for s in siblings:
        if not s.component or s.component in have:
            continue
        missing.setdefault(s.component, []).append(s)
    return missing


def _section_line(course: Course) -> str:
    meetings = ", ".join(course.raw_meetings) if course.raw_meetings else "no meeting times"
    return f"  {course.id} ({course.component} {course.section}: {meetings})"


def _missing_sections_message(course: Course, missing: dict[str, list[Course]]) -> str:
    lines = [
        f"{course.label} has several components. Choose one section of each "
        f"and add them together (companion_ids). Nothing was added.",
    ]
    for component, sections in missing.items():
        lines.append(f"{component} sections:")
        lines.extend(_section_line(s) for s in sections)
    return "\n".join(lines)


def add_course_to_schedule(
    catalog: Catalog,
    store: ScheduleStore,
    user_id: str,
    course_id: str,
    notes: Optional[str] = None,
    companion_ids: Sequence[str] = (),
    require_sections: bool = True,
) -> str:
    """
    Add a section (plus optional companion sections of the same course).

    Conflicts with the rest of the schedule are reported, never blocking.
    With require_sections, a course that has several components (e.g. LEC
    and DIS) is only added once a section of every component is chosen.
    """
    try:
        return _add_course(catalog, store, user_id, course_id, notes, companion_ids, require_sections)
    except SQLAlchemyError as e:
        logger.exception("Adding %s for %s failed", course_id, user_id)
        return f"Error adding course to schedule: {e}"


def _add_course(
    catalog: Catalog,
    store: ScheduleStore,
    user_id: str,
    course_id: str,
    notes: Optional[str],
    companion_ids: Sequence[str],
    require_sections: bool,
) -> str:
    course = catalog.get_by_id(course_id)
    if course is None:
        return f"Error: Course {course_id} not found in the catalog."

    requested: list[Course] = [course]
    for cid in companion_ids:
        if cid in {c.id for c in requested}:
            continue
        companion = catalog.get_by_id(cid)
        if companion is None:
            return f"Error: Course {cid} not found in the catalog."
        if companion.key != course.key:
            return f"Error: {cid} is not a section of {course.label}."
        requested.append(companion)

    schedule = [item.course for item in store.list_for_user(user_id)]

    if require_sections:
        missing = missing_components(catalog, course, schedule + requested)
        if missing:
            return _missing_sections_message(course, missing)

    store.upsert_many(user_id, [c.id for c in requested], notes)

    new_ids = {c.id for c in requested}
    existing = [c for c in schedule if c.id not in new_ids]
    conflicts = []
    for i, c in enumerate(requested):
        conflicts.extend(conflicts_with(c, existing + requested[i + 1:]))

    sections = ", ".join(" ".join(p for p in (c.component, c.section) if p) for c in requested)
    response = f"Added {course.full_label}"
    if sections.strip(", "):
        response += f" ({sections})"
    response += " to your schedule."

    if conflicts:
        logger.info("Added %s for %s with %d conflicts", course.id, user_id, len(conflicts))
        response += "\n\nTime conflicts detected:\n" + "\n".join(f"- {c.course2}: {c.reason}" for c in conflicts)

    return response


def parse_course_key(course_key: str) -> Optional[tuple[str, str]]:
    """
    'CS-2110' or 'CS 2110' -> ('CS', '2110'). None if malformed.
    """
    parts = [p for p in re.split(r"[-\s]+", (course_key or "").strip()) if p]
    if len(parts) < 2:
        return None
    return parts[0].upper(), parts[1]


def remove_course_from_schedule(store: ScheduleStore, user_id: str, course_key: str) -> str:
    """
    Remove a course by subject + catalog number.

    This removes ALL sections of the course (lecture, discussion, lab, ...)
    from the user's schedule, not a single entry.
    """
    key = parse_course_key(course_key)
    if key is None:
        return f"Please give the course as subject and catalog number, e.g. 'CS-2110' (got {course_key!r})."

    try:
        deleted = store.delete_by_key(user_id, *key)
    except SQLAlchemyError as e:
        logger.exception("Removing %s for %s failed", course_key, user_id)
        return f"Error removing course from schedule: {e}"
    if deleted == 0:
        return f"Course {course_key} was not in your schedule."

    return f"Removed {key[0]} {key[1]} from your schedule ({deleted} section(s))."


def format_text_schedule(courses: Sequence[Course]) -> str:
    """
    Weekday -> "time - course: title" lines, ordered by start time.
    """
    day_map = bucket_by_day(courses)

    lines = [f"Your Weekly Schedule ({len(courses)} courses)", ""]
    for day, day_name in zip(DAYS, DAY_NAMES):
        lines.append(f"**{day_name}:**")
        blocks = sorted(day_map[day], key=lambda b: b.start_minutes)
        if not blocks:
            lines.append("  No classes")
        for b in blocks:
            lines.append(f"  {b.start}-{b.end} - {b.course}: {b.title}")
        lines.append("")

    return "\n".join(lines)


def view_my_schedule(
    store: ScheduleStore,
    user_id: str,
    uploader: Optional[Uploader] = None,
    config: Optional[CalendarConfig] = None,
) -> str:
    """
    Text schedule plus, when an uploader is given, a link to the SVG calendar.

    If rendering or upload fails the text schedule is returned alone.
    """
    try:
        items = store.list_for_user(user_id)
    except SQLAlchemyError as e:
        logger.exception("Loading schedule for %s failed", user_id)
        return f"Error viewing schedule: {e}"

    if not items:
        return EMPTY_SCHEDULE_MSG

    courses = [item.course for item in items]
    text = format_text_schedule(courses)

    if uploader is None:
        return text

    try:
        image_url = uploader(generate_svg_calendar(courses, config))
    except Exception:
        logger.exception("Error generating/uploading calendar for %s", user_id)
        return text

    if not image_url:
        return text

    return f"{text}\n**Visual Calendar:**\n![Weekly Schedule]({image_url})"


def check_schedule_conflicts(store: ScheduleStore, user_id: str) -> ToolResult:
    """
    Scan the whole schedule for time conflicts.
    """
    try:
        courses = [item.course for item in store.list_for_user(user_id)]
    except SQLAlchemyError as e:
        logger.exception("Loading schedule for %s failed", user_id)
        return f"Error checking conflicts: {e}"

    if len(courses) < 2:
        return "You need at least 2 courses in your schedule to check for conflicts."

    conflicts = find_conflicts(courses)
    if not conflicts:
        return "No time conflicts found in your schedule!"

    return {
        "conflict_count": len(conflicts),
        "conflicts": [c.to_dict() for c in conflicts],
    }
