"""
Persistent storage for the course catalog and users' schedules.

Two tables live in one SQLite database:

    courses         one row per section (ingested, read-only except status)
    user_schedules  one row per (user, course) selection

Design rationale:
- the catalog is the complete ingested dataset
- user_schedules stores only personal choices, so re-ingesting the catalog
  never touches user state
- the (user_id, course_id) uniqueness is enforced by the database and written
  with a single INSERT ... ON CONFLICT statement, so concurrent adds cannot
  produce duplicates
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from classplanner.meetings import load_meeting_strings, parse_meetings
from classplanner.model import Course, ScheduleItem

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    subject: Mapped[str] = mapped_column(String, nullable=False, index=True)
    catalog_nbr: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    section: Mapped[str] = mapped_column(String, nullable=False)
    class_nbr: Mapped[int] = mapped_column(Integer, nullable=False)
    component: Mapped[Optional[str]] = mapped_column(String, index=True)  # SEM, LEC, DIS, ...
    status: Mapped[Optional[str]] = mapped_column(String, index=True)  # O (open), C (closed), ...
    credits: Mapped[Optional[int]] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(Text)
    meetings: Mapped[Optional[str]] = mapped_column(Text)  # JSON array of meeting strings
    instructors: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    prerequisites: Mapped[Optional[str]] = mapped_column(Text)
    restrictions: Mapped[Optional[str]] = mapped_column(Text)
    attributes: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    notes: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    text_for_embedding: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())


class ScheduleEntryRow(Base):
    __tablename__ = "user_schedules"
    __table_args__ = (UniqueConstraint("user_id", "course_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String, ForeignKey("courses.id"), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    added_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())


# ---------------------------------------------------------------------------
# Engine / sessions
# ---------------------------------------------------------------------------


def _default_db_path() -> Path:
    """
    Return the default database path inside the package data folder.

    Tests and the CLI pass their own path through ``create_db_engine``.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "classplanner.db"


def create_db_engine(path: str | Path | None = None) -> Engine:
    """
    Create a SQLite engine and make sure all tables exist.
    """
    db_path = Path(path) if path is not None else _default_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    return engine


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """
    Session with commit on success and rollback on error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Row <-> model conversion
# ---------------------------------------------------------------------------


def _load_list(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        return (value,)
    if isinstance(data, list):
        return tuple(str(x) for x in data)
    return (str(data),)


def _dump_list(value: Any) -> str:
    if value is None:
        return "[]"
    if isinstance(value, str):
        return json.dumps([value])
    return json.dumps(list(value), ensure_ascii=False)


def row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        subject=row.subject,
        catalog_nbr=row.catalog_nbr,
        title=row.title,
        section=row.section,
        class_nbr=row.class_nbr,
        component=row.component,
        status=row.status,
        credits=row.credits,
        meetings=parse_meetings(row.meetings),
        raw_meetings=load_meeting_strings(row.meetings),
        instructors=_load_list(row.instructors),
        description=row.description or "",
        prerequisites=row.prerequisites or "",
        restrictions=row.restrictions or "",
        attributes=_load_list(row.attributes),
        notes=_load_list(row.notes),
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass
class SearchFilters:
    """
    Filters for the structured catalog search. None means "no filter".
    """

    subject: Optional[str] = None
    credits: Optional[int] = None
    min_credits: Optional[int] = None
    max_credits: Optional[int] = None
    instructor: Optional[str] = None
    day_of_week: Optional[str] = None
    distribution_req: Optional[str] = None
    catalog_nbr_start: Optional[str] = None

    def active(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v not in (None, "")}


# only primary sections show up in structured search results
SEARCHABLE_COMPONENTS = ("LEC", "SEM")


class Catalog:
    """
    Read access (plus ingestion upsert) to the course catalog.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def get_by_id(self, course_id: str) -> Optional[Course]:
        with session_scope(self._sessions) as s:
            row = s.get(CourseRow, course_id)
            return row_to_course(row) if row is not None else None

    def get_many(self, course_ids: Iterable[str]) -> list[Course]:
        """
        Fetch several records, keeping the order of `course_ids`.
        """
        ids = list(course_ids)
        if not ids:
            return []
        with session_scope(self._sessions) as s:
            rows = s.scalars(select(CourseRow).where(CourseRow.id.in_(ids))).all()
            by_id = {r.id: row_to_course(r) for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    def get_by_key(self, subject: str, catalog_nbr: str) -> list[Course]:
        """
        All sections of one course, ordered by component then section.
        """
        stmt = (
            select(CourseRow)
            .where(CourseRow.subject == subject, CourseRow.catalog_nbr == catalog_nbr)
            .order_by(CourseRow.component, CourseRow.section)
        )
        with session_scope(self._sessions) as s:
            return [row_to_course(r) for r in s.scalars(stmt).all()]

    def search(self, filters: SearchFilters, limit: int = 20) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.component.in_(SEARCHABLE_COMPONENTS))

        if filters.subject:
            stmt = stmt.where(CourseRow.subject == filters.subject.upper())
        if filters.credits:
            stmt = stmt.where(CourseRow.credits == filters.credits)
        if filters.min_credits:
            stmt = stmt.where(CourseRow.credits >= filters.min_credits)
        if filters.max_credits:
            stmt = stmt.where(CourseRow.credits <= filters.max_credits)
        if filters.instructor:
            stmt = stmt.where(CourseRow.instructors.like(f"%{filters.instructor}%"))
        if filters.distribution_req:
            # exact tag inside the JSON array: "GLC-AS" must not match "DLG-AG"
            stmt = stmt.where(CourseRow.attributes.like(f'%"{filters.distribution_req}"%'))
        if filters.catalog_nbr_start:
            stmt = stmt.where(CourseRow.catalog_nbr.like(f"{filters.catalog_nbr_start}%"))
        if filters.day_of_week:
            stmt = stmt.where(CourseRow.meetings.like(f"%{filters.day_of_week}%"))

        stmt = stmt.order_by(CourseRow.subject, CourseRow.catalog_nbr).limit(limit)
        logger.debug("Catalog search filters=%s limit=%s", filters.active(), limit)

        with session_scope(self._sessions) as s:
            return [row_to_course(r) for r in s.scalars(stmt).all()]

    def all_courses(self) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.subject, CourseRow.catalog_nbr, CourseRow.section)
        with session_scope(self._sessions) as s:
            return [row_to_course(r) for r in s.scalars(stmt).all()]

    def upsert_course(self, record: dict[str, Any]) -> None:
        """
        Insert one section. An existing id only gets its status refreshed.
        """
        values = {
            "id": record["id"],
            "subject": record["subject"],
            "catalog_nbr": str(record["catalog_nbr"]),
            "title": record["title"],
            "section": str(record.get("section") or ""),
            "class_nbr": int(record.get("class_nbr") or 0),
            "component": record.get("component"),
            "status": record.get("status"),
            "credits": record.get("credits"),
            "description": record.get("description"),
            "meetings": _dump_list(record.get("meetings")),
            "instructors": _dump_list(record.get("instructors")),
            "prerequisites": record.get("prerequisites"),
            "restrictions": record.get("restrictions"),
            "attributes": _dump_list(record.get("attributes")),
            "notes": _dump_list(record.get("notes")),
            "text_for_embedding": record.get("text_for_embedding"),
        }
        stmt = sqlite_insert(CourseRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CourseRow.id],
            set_={"status": stmt.excluded.status, "updated_at": func.current_timestamp()},
        )
        with session_scope(self._sessions) as s:
            s.execute(stmt)


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class ScheduleStore:
    """
    Per-user course selections.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def upsert(self, user_id: str, course_id: str, notes: Optional[str] = None) -> None:
        """
        Add a course for a user; a repeated add only replaces the notes.
        """
        self.upsert_many(user_id, [course_id], notes)

    def upsert_many(self, user_id: str, course_ids: Iterable[str], notes: Optional[str] = None) -> None:
        """
        Add several sections in one transaction: all of them or none.
        """
        with session_scope(self._sessions) as s:
            for course_id in course_ids:
                stmt = sqlite_insert(ScheduleEntryRow).values(user_id=user_id, course_id=course_id, notes=notes)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ScheduleEntryRow.user_id, ScheduleEntryRow.course_id],
                    set_={"notes": stmt.excluded.notes},
                )
                s.execute(stmt)

    def list_for_user(self, user_id: str) -> list[ScheduleItem]:
        """
        The user's schedule, ordered by subject and catalog number.
        """
        stmt = (
            select(CourseRow, ScheduleEntryRow.notes, ScheduleEntryRow.added_at)
            .join(ScheduleEntryRow, ScheduleEntryRow.course_id == CourseRow.id)
            .where(ScheduleEntryRow.user_id == user_id)
            .order_by(CourseRow.subject, CourseRow.catalog_nbr, ScheduleEntryRow.id)
        )
        with session_scope(self._sessions) as s:
            return [
                ScheduleItem(course=row_to_course(row), notes=notes, added_at=added_at)
                for row, notes, added_at in s.execute(stmt).all()
            ]

    def delete_by_key(self, user_id: str, subject: str, catalog_nbr: str) -> int:
        """
        Remove every section of (subject, catalog_nbr) from the user's schedule.

        Returns the number of deleted entries.
        """
        sections = select(CourseRow.id).where(
            CourseRow.subject == subject,
            CourseRow.catalog_nbr == catalog_nbr,
        )
        stmt = (
            delete(ScheduleEntryRow)
            .where(ScheduleEntryRow.user_id == user_id, ScheduleEntryRow.course_id.in_(sections))
            .execution_options(synchronize_session=False)
        )
        with session_scope(self._sessions) as s:
            result = s.execute(stmt)
            return result.rowcount or 0
