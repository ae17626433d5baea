"""
Shared sample data for the tests: a tiny catalog in a temporary SQLite file.

Catalog layout:
- CS 2110: LEC 001 (MW 10:10AM-11:25AM), DIS 201 (F 09:05AM-09:55AM), DIS 202 (F 11:15AM-12:05PM)
- MATH 1920: LEC 001 (MW 11:15AM-12:05PM), overlaps CS 2110 LEC on M and W
- PHYS 1112: LEC 001 (TR 02:55PM-04:10PM)
- ENGL 1100: SEM 101 (TR 10:10AM-11:25AM), SEM 102 (MWF 01:25PM-02:15PM)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from classplanner.ingest import ingest_courses
from classplanner.model import Course
from classplanner.meetings import parse_meetings
from classplanner.storage import Catalog, ScheduleStore, create_db_engine

CS_LEC = "CS-2110-001-10001"
CS_DIS_1 = "CS-2110-201-10002"
CS_DIS_2 = "CS-2110-202-10003"
MATH_LEC = "MATH-1920-001-20001"
PHYS_LEC = "PHYS-1112-001-30001"
ENGL_SEM_1 = "ENGL-1100-101-40001"
ENGL_SEM_2 = "ENGL-1100-102-40002"


def _section(
    id: str,
    subject: str,
    nbr: str,
    title: str,
    section: str,
    component: str,
    meetings: list[str],
    credits: int = 4,
    instructors: list[str] | None = None,
    attributes: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "id": id,
        "subject": subject,
        "catalogNbr": nbr,
        "title": title,
        "section": section,
        "classNbr": int(id.rsplit("-", 1)[-1]),
        "component": component,
        "credits": credits,
        "status": "O",
        "meetings": meetings,
        "instructors": instructors or [],
        "attributes": attributes or [],
        "prereqs": "",
        "restrictions": "",
        "description": f"{title} description",
        "notes": [],
        "text_for_embedding": title,
    }


def sample_sections() -> list[dict[str, Any]]:
    oop = "Object-Oriented Programming and Data Structures"
    return [
        _section(CS_LEC, "CS", "2110", oop, "001", "LEC", ["MW 10:10AM-11:25AM"],
                 instructors=["Curran Muhlberger"], attributes=["SDS-AS"]),
        _section(CS_DIS_1, "CS", "2110", oop, "201", "DIS", ["F 09:05AM-09:55AM"], credits=0),
        _section(CS_DIS_2, "CS", "2110", oop, "202", "DIS", ["F 11:15AM-12:05PM"], credits=0),
        _section(MATH_LEC, "MATH", "1920", "Multivariable Calculus for Engineers", "001", "LEC",
                 ["MW 11:15AM-12:05PM"], attributes=["MQR-AS"]),
        _section(PHYS_LEC, "PHYS", "1112", "Physics I: Mechanics", "001", "LEC",
                 ["TR 02:55PM-04:10PM"], attributes=["PHS-AS"]),
        _section(ENGL_SEM_1, "ENGL", "1100", "Writing Seminar", "101", "SEM",
                 ["TR 10:10AM-11:25AM"], credits=3, instructors=["Jane Doe"], attributes=["GLC-AS"]),
        _section(ENGL_SEM_2, "ENGL", "1100", "Writing Seminar", "102", "SEM",
                 ["MWF 01:25PM-02:15PM"], credits=3, instructors=["John Roe"], attributes=["GLC-AS"]),
    ]


def make_db(directory: str | Path, ingest: bool = True) -> tuple[Any, Catalog, ScheduleStore]:
    """
    Create a fresh database in `directory`, optionally loaded with the sample catalog.
    """
    engine = create_db_engine(Path(directory) / "test.db")
    catalog = Catalog(engine)
    store = ScheduleStore(engine)
    if ingest:
        ingest_courses(catalog, sample_sections())
    return engine, catalog, store


def make_course(
    subject: str,
    nbr: str,
    meetings: list[str],
    title: str = "",
    section: str = "001",
    component: str = "LEC",
) -> Course:
    """
    In-memory Course for tests that do not need the database.
    """
    return Course(
        id=f"{subject}-{nbr}-{section}",
        subject=subject,
        catalog_nbr=nbr,
        title=title or f"{subject} {nbr} title",
        section=section,
        component=component,
        meetings=parse_meetings(meetings),
        raw_meetings=tuple(meetings),
    )
