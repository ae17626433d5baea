"""
Ingestion (flattened sections JSON -> catalog).

- Reads a JSON array of course sections, one object per section:
    {"id": "CS-2110-001-12345", "subject": "CS", "catalogNbr": "2110",
     "title": "...", "section": "001", "classNbr": 12345, "component": "LEC",
     "credits": 4, "status": "O", "meetings": ["MW 10:10AM-11:25AM"],
     "instructors": [...], "attributes": [...], "prereqs": "...",
     "restrictions": "...", "description": "...", "notes": [...],
     "text_for_embedding": "..."}
- Upserts every section into the catalog table

Important rules:
- all sections are stored (LEC, DIS, LAB, ...), one row per section
- re-ingesting an existing id only refreshes its status
- one bad record never aborts the batch
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError

from classplanner.storage import Catalog

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 50


@dataclass
class IngestResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def section_to_record(section: dict[str, Any]) -> dict[str, Any]:
    """
    Map one flattened section (camelCase keys) onto catalog column names.
    """
    return {
        "id": section["id"],
        "subject": section["subject"],
        "catalog_nbr": section["catalogNbr"],
        "title": section["title"],
        "section": section.get("section", ""),
        "class_nbr": section.get("classNbr", 0),
        "component": section.get("component"),
        "status": section.get("status"),
        "credits": section.get("credits"),
        "description": section.get("description"),
        "meetings": section.get("meetings") or [],
        "instructors": section.get("instructors") or [],
        "prerequisites": section.get("prereqs"),
        "restrictions": section.get("restrictions"),
        "attributes": section.get("attributes") or [],
        "notes": section.get("notes") or [],
        "text_for_embedding": section.get("text_for_embedding"),
    }


def ingest_courses(catalog: Catalog, sections: Iterable[dict[str, Any]]) -> IngestResult:
    """
    Upsert all sections into the catalog and report per-record outcomes.
    """
    sections = list(sections)
    result = IngestResult()

    for section in sections:
        section_id = section.get("id", "?") if isinstance(section, dict) else "?"
        try:
            catalog.upsert_course(section_to_record(section))
        except (KeyError, TypeError, ValueError, AttributeError, SQLAlchemyError) as e:
            result.failed += 1
            msg = f"Failed to ingest {section_id}: {e!r}"
            result.errors.append(msg)
            logger.error(msg)
            continue

        result.success += 1
        if result.success % PROGRESS_EVERY == 0:
            logger.info("Ingested %d/%d courses", result.success, len(sections))

    return result


def load_sections(path: str | Path) -> list[dict[str, Any]]:
    """
    Read a flattened sections JSON file. The top level must be a list.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of sections")
    return data
