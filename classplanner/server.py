# -*- coding: utf-8 -*-
"""
MCP server exposing the course-scheduling tools to a language model.

The tools are bound to one database and one user id taken from Settings
(CLASSPLANNER_DB / CLASSPLANNER_USER_ID). Run with:

    classplanner serve
    python -m classplanner.server
"""
import functools
import logging
import typing as t

from fastmcp import FastMCP

from classplanner import tools
from classplanner.config import Settings
from classplanner.storage import Catalog, ScheduleStore, SearchFilters, create_db_engine
from classplanner.upload import upload_svg

logger = logging.getLogger(__name__)

INSTRUCTIONS = """\
Course scheduling assistant tools.
- Always call view_my_schedule when the user asks about their schedule.
- Show meeting times exactly as stored, e.g. "MW 10:10AM-11:25AM".
- When a course has discussion or lab sections, ask which one the user wants
  and pass it in companion_ids when adding the lecture.
- Keep markdown images returned by view_my_schedule unchanged.
"""

mcp = FastMCP("ClassPlanner", instructions=INSTRUCTIONS)

_settings: t.Optional[Settings] = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Settings) -> None:
    """Replace the settings the tools are bound to (used by the CLI)."""
    global _settings
    _settings = settings
    _backend.cache_clear()


@functools.lru_cache(maxsize=1)
def _backend() -> tuple[Catalog, ScheduleStore]:
    engine = create_db_engine(_get_settings().db_path)
    return Catalog(engine), ScheduleStore(engine)


def _uploader(svg: str) -> t.Optional[str]:
    settings = _get_settings()
    return upload_svg(
        svg,
        url=settings.upload_url,
        expiry_hours=settings.upload_expiry_hours,
        timeout=settings.upload_timeout,
    )


@mcp.tool()
def search_courses(query: str, limit: int = 10) -> t.Union[str, dict[str, t.Any]]:
    """Search for courses using natural language.

    :param query: Search text, e.g. 'machine learning classes'.
    :param limit: Maximum number of results to return.
    :return: Matching courses, or a message if nothing matched.
    """
    catalog, _ = _backend()
    return tools.search_courses(catalog, query, limit=limit)


@mcp.tool()
def advanced_course_search(
        subject: t.Optional[str] = None,
        credits: t.Optional[int] = None,
        day_of_week: t.Optional[str] = None,
        instructor: t.Optional[str] = None,
        distribution_req: t.Optional[str] = None,
        min_credits: t.Optional[int] = None,
        max_credits: t.Optional[int] = None,
        catalog_nbr_start: t.Optional[str] = None,
        limit: int = 20,
) -> t.Union[str, dict[str, t.Any]]:
    """Search lectures and seminars with filters.

    :param subject: Subject code, e.g. 'CS'.
    :param credits: Exact number of credits.
    :param day_of_week: Day letters (M, T, W, R, F) or patterns like 'MW', 'TR'.
    :param instructor: Instructor name (partial match).
    :param distribution_req: Distribution requirement tag, e.g. 'MQR-AS'.
    :param min_credits: Minimum credits.
    :param max_credits: Maximum credits.
    :param catalog_nbr_start: Level prefix, e.g. '2' for 2000-level.
    :param limit: Maximum number of results.
    :return: Matching courses, or a message if nothing matched.
    """
    catalog, _ = _backend()
    filters = SearchFilters(
        subject=subject,
        credits=credits,
        min_credits=min_credits,
        max_credits=max_credits,
        instructor=instructor,
        day_of_week=day_of_week,
        distribution_req=distribution_req,
        catalog_nbr_start=catalog_nbr_start,
    )
    return tools.advanced_course_search(catalog, filters, limit=limit)


@mcp.tool()
def get_course_details(
        course_id: t.Optional[str] = None,
        subject: t.Optional[str] = None,
        catalog_nbr: t.Optional[str] = None,
) -> t.Union[str, dict[str, t.Any]]:
    """Get one section by id, or all sections of a course by subject and catalog number.

    :param course_id: Section id, e.g. 'CS-2110-001-12345'.
    :param subject: Subject code, e.g. 'CS'.
    :param catalog_nbr: Catalog number, e.g. '2110'.
    """
    catalog, _ = _backend()
    return tools.get_course_details(catalog, course_id=course_id, subject=subject, catalog_nbr=catalog_nbr)


@mcp.tool()
def add_course_to_schedule(
        course_id: str,
        notes: t.Optional[str] = None,
        companion_ids: t.Optional[list[str]] = None,
) -> str:
    """Add a section to the user's schedule and report time conflicts.

    :param course_id: Section id to add.
    :param notes: Optional notes about this course.
    :param companion_ids: Discussion/lab section ids of the same course to add together.
    """
    catalog, store = _backend()
    return tools.add_course_to_schedule(
        catalog,
        store,
        _get_settings().user_id,
        course_id,
        notes=notes,
        companion_ids=companion_ids or (),
        require_sections=_get_settings().enforce_sections,
    )


@mcp.tool()
def view_my_schedule() -> str:
    """Show the user's weekly schedule as text plus a calendar image link."""
    _, store = _backend()
    return tools.view_my_schedule(store, _get_settings().user_id, uploader=_uploader)


@mcp.tool()
def remove_course_from_schedule(course_id: str) -> str:
    """Remove every section of a course from the user's schedule.

    :param course_id: Subject and catalog number, e.g. 'CS-2110'.
    """
    _, store = _backend()
    return tools.remove_course_from_schedule(store, _get_settings().user_id, course_id)


@mcp.tool()
def check_schedule_conflicts() -> t.Union[str, dict[str, t.Any]]:
    """Check for time conflicts between the courses in the user's schedule."""
    _, store = _backend()
    return tools.check_schedule_conflicts(store, _get_settings().user_id)


def run(settings: t.Optional[Settings] = None) -> None:
    if settings is not None:
        configure(settings)
    current = _get_settings()
    logger.info("Starting MCP server (db=%s, user=%s)", current.db_path, current.user_id)
    mcp.run()


if __name__ == "__main__":
    run()
