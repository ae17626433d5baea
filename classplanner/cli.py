"""
CLI (Command Line Interface).

This module provides terminal commands for power users and for testing, e.g.:

    classplanner ingest <sections.json>
    classplanner search <text>
    classplanner find --subject CS --days MW
    classplanner details CS 2110
    classplanner add <course_id> [--with <companion_id> ...]
    classplanner remove CS-2110
    classplanner conflicts
    classplanner view [--upload]
    classplanner calendar <out.svg>
    classplanner serve

Every command runs the same tool functions the MCP server exposes, for the
user given by --user (default: CLASSPLANNER_USER_ID or "local").
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

from classplanner import tools
from classplanner.calendar_svg import generate_svg_calendar
from classplanner.config import Settings
from classplanner.ingest import ingest_courses, load_sections
from classplanner.storage import Catalog, ScheduleStore, SearchFilters, create_db_engine
from classplanner.upload import upload_svg

console = Console()


def _print_result(result: Any) -> None:
    """
    Print a tool result: strings as-is, dicts as indented JSON.
    """
    if isinstance(result, str):
        console.print(result, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print_json(json.dumps(result, ensure_ascii=False))


def _print_course_table(title: str, courses: list[dict[str, Any]]) -> None:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Id")
    table.add_column("Course")
    table.add_column("Type")
    table.add_column("Meetings")
    for c in courses:
        table.add_row(
            c["id"],
            f"{c['subject']} {c['catalog_nbr']}: {c['title']}",
            c.get("component") or "",
            ", ".join(c.get("meetings") or []),
        )
    console.print(table)


def _cmd_ingest(args: argparse.Namespace, catalog: Catalog) -> int:
    try:
        sections = load_sections(args.file)
    except (OSError, ValueError) as e:
        console.print(f"Cannot read {args.file}: {e}", markup=False)
        return 1

    result = ingest_courses(catalog, sections)
    console.print(f"Ingested: {result.success} succeeded, {result.failed} failed")
    for err in result.errors[:10]:
        console.print(f"  - {err}", markup=False)
    if len(result.errors) > 10:
        console.print(f"  ... and {len(result.errors) - 10} more")
    return 0


def _cmd_search(args: argparse.Namespace, catalog: Catalog) -> int:
    query = (args.text or "").strip()
    if not query:
        console.print("Please provide a search text.")
        return 1

    result = tools.search_courses(catalog, query, limit=args.limit)
    if isinstance(result, dict):
        _print_course_table(f"Search results ({result['count']})", result["courses"])
    else:
        _print_result(result)
    return 0


def _cmd_find(args: argparse.Namespace, catalog: Catalog) -> int:
    filters = SearchFilters(
        subject=args.subject,
        credits=args.credits,
        min_credits=args.min_credits,
        max_credits=args.max_credits,
        instructor=args.instructor,
        day_of_week=args.days,
        distribution_req=args.distribution,
        catalog_nbr_start=args.level,
    )
    result = tools.advanced_course_search(catalog, filters, limit=args.limit)
    if isinstance(result, dict):
        _print_course_table(f"Courses ({result['count']})", result["courses"])
    else:
        _print_result(result)
    return 0


def _cmd_details(args: argparse.Namespace, catalog: Catalog) -> int:
    if args.catalog_nbr:
        result = tools.get_course_details(catalog, subject=args.id_or_subject, catalog_nbr=args.catalog_nbr)
    else:
        result = tools.get_course_details(catalog, course_id=args.id_or_subject)
    _print_result(result)
    return 0


def _cmd_add(args: argparse.Namespace, catalog: Catalog, store: ScheduleStore, settings: Settings) -> int:
    cid = (args.course_id or "").strip()
    if not cid:
        console.print("Please provide a course_id.")
        return 1

    result = tools.add_course_to_schedule(
        catalog,
        store,
        settings.user_id,
        cid,
        notes=args.notes,
        companion_ids=args.companions or (),
        require_sections=settings.enforce_sections,
    )
    _print_result(result)
    return 0


def _cmd_remove(args: argparse.Namespace, store: ScheduleStore, settings: Settings) -> int:
    if tools.parse_course_key(args.course) is None:
        console.print("Please provide subject and catalog number, e.g. CS-2110.")
        return 1

    _print_result(tools.remove_course_from_schedule(store, settings.user_id, args.course))
    return 0


def _cmd_conflicts(args: argparse.Namespace, store: ScheduleStore, settings: Settings) -> int:
    """
    Print all detected conflicts in the user's schedule.
    """
    result = tools.check_schedule_conflicts(store, settings.user_id)
    if isinstance(result, str):
        _print_result(result)
        return 0

    table = Table(title=f"Conflicts found: {result['conflict_count']}", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Course")
    table.add_column("Course")
    table.add_column("Meetings")
    for i, c in enumerate(result["conflicts"], start=1):
        table.add_row(str(i), c["course1"], c["course2"], c["reason"])
    console.print(table)
    return 0


def _cmd_view(args: argparse.Namespace, store: ScheduleStore, settings: Settings) -> int:
    uploader = None
    if args.upload:
        uploader = functools.partial(
            upload_svg,
            url=settings.upload_url,
            expiry_hours=settings.upload_expiry_hours,
            timeout=settings.upload_timeout,
        )

    _print_result(tools.view_my_schedule(store, settings.user_id, uploader=uploader))
    return 0


def _cmd_calendar(args: argparse.Namespace, store: ScheduleStore, settings: Settings) -> int:
    """
    Write the user's weekly calendar as an SVG file.
    """
    courses = [item.course for item in store.list_for_user(settings.user_id)]
    if not courses:
        console.print(tools.EMPTY_SCHEDULE_MSG, markup=False)
        return 0

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(generate_svg_calendar(courses), encoding="utf-8")
    console.print(f"Calendar written to: {out}", markup=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="classplanner", description="Course scheduling assistant CLI")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--user", default=None, help="User id whose schedule is used")
    parser.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_ingest = sub.add_parser("ingest", help="Load course sections JSON into the catalog")
    p_ingest.add_argument("file", type=Path, help="Flattened sections JSON file")

    p_search = sub.add_parser("search", help="Search for courses")
    p_search.add_argument("text", type=str, help="Search text")
    p_search.add_argument("--limit", type=int, default=10)

    p_find = sub.add_parser("find", help="Search lectures/seminars with filters")
    p_find.add_argument("--subject")
    p_find.add_argument("--credits", type=int)
    p_find.add_argument("--min-credits", type=int)
    p_find.add_argument("--max-credits", type=int)
    p_find.add_argument("--instructor")
    p_find.add_argument("--days", help="Day pattern, e.g. MW or TR")
    p_find.add_argument("--distribution", help="Distribution requirement tag, e.g. MQR-AS")
    p_find.add_argument("--level", help="Catalog number prefix, e.g. 2 for 2000-level")
    p_find.add_argument("--limit", type=int, default=20)

    p_details = sub.add_parser("details", help="Show one section, or all sections of a course")
    p_details.add_argument("id_or_subject", help="Section id, or subject code when catalog_nbr is given")
    p_details.add_argument("catalog_nbr", nargs="?", default=None)

    p_add = sub.add_parser("add", help="Add a section to the schedule")
    p_add.add_argument("course_id", type=str, help="Section id (e.g. CS-2110-001-12345)")
    p_add.add_argument("--notes", default=None)
    p_add.add_argument(
        "--with", dest="companions", action="append", default=None,
        help="Discussion/lab section id of the same course (repeatable)",
    )

    p_remove = sub.add_parser("remove", help="Remove all sections of a course")
    p_remove.add_argument("course", type=str, help="Subject and catalog number (e.g. CS-2110)")

    sub.add_parser("conflicts", help="Show schedule conflicts")

    p_view = sub.add_parser("view", help="Show the weekly schedule")
    p_view.add_argument("--upload", action="store_true", help="Also upload the SVG calendar and print its link")

    p_cal = sub.add_parser("calendar", help="Write the weekly calendar as SVG")
    p_cal.add_argument("out", type=str, help="Output file path (e.g. schedule.svg)")

    sub.add_parser("serve", help="Run the MCP tool server")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    if args.db is not None:
        settings.db_path = args.db
    if args.user:
        settings.user_id = args.user
    logging.basicConfig(level=(args.log_level or settings.log_level).upper())

    if args.command == "serve":
        from classplanner.server import run

        run(settings)
        raise SystemExit(0)

    engine = create_db_engine(settings.db_path)
    catalog = Catalog(engine)
    store = ScheduleStore(engine)

    if args.command == "ingest":
        raise SystemExit(_cmd_ingest(args, catalog))
    if args.command == "search":
        raise SystemExit(_cmd_search(args, catalog))
    if args.command == "find":
        raise SystemExit(_cmd_find(args, catalog))
    if args.command == "details":
        raise SystemExit(_cmd_details(args, catalog))
    if args.command == "add":
        raise SystemExit(_cmd_add(args, catalog, store, settings))
    if args.command == "remove":
        raise SystemExit(_cmd_remove(args, store, settings))
    if args.command == "conflicts":
        raise SystemExit(_cmd_conflicts(args, store, settings))
    if args.command == "view":
        raise SystemExit(_cmd_view(args, store, settings))
    if args.command == "calendar":
        raise SystemExit(_cmd_calendar(args, store, settings))

    raise SystemExit(2)
