"""
Tests for the tool functions (add / remove / view / conflicts / search).

Policies covered:
- conflicts found on add are reported but never block the add
- a repeated add updates notes and never duplicates the entry
- a course with lecture + discussion sections is only added once a section
  of each component has been chosen
- remove deletes every section of the course
- a failed calendar upload falls back to the text schedule
- database and index failures become "Error ..." messages, and a failed add
  writes none of its sections
"""

import tempfile
import unittest
from unittest import mock

from sqlalchemy import Insert
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from classplanner import tools
from classplanner.storage import SearchFilters
from tests.helpers import (
    CS_DIS_1,
    CS_DIS_2,
    CS_LEC,
    ENGL_SEM_1,
    ENGL_SEM_2,
    MATH_LEC,
    PHYS_LEC,
    make_db,
)

USER = "alice"


class ToolsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.engine, self.catalog, self.store = make_db(self._tmp.name)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmp.cleanup()

    def add(self, course_id: str, **kwargs) -> str:
        return tools.add_course_to_schedule(self.catalog, self.store, USER, course_id, **kwargs)

    def schedule_ids(self, user: str = USER) -> list[str]:
        return [item.course.id for item in self.store.list_for_user(user)]


class TestAddCourse(ToolsTestCase):
    def test_unknown_course(self) -> None:
        msg = self.add("CS-9999-001-0")
        self.assertIn("not found", msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_add_single_component_course(self) -> None:
        msg = self.add(MATH_LEC)
        self.assertIn("Added MATH 1920: Multivariable Calculus for Engineers (LEC 001)", msg)
        self.assertNotIn("conflict", msg.lower())
        self.assertEqual(self.schedule_ids(), [MATH_LEC])

    def test_repeated_add_updates_notes(self) -> None:
        self.add(PHYS_LEC, notes="maybe")
        self.add(PHYS_LEC, notes="definitely")

        items = self.store.list_for_user(USER)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].course.id, PHYS_LEC)
        self.assertEqual(items[0].notes, "definitely")

    def test_lecture_without_discussion_is_refused(self) -> None:
        msg = self.add(CS_LEC)

        self.assertIn("Nothing was added", msg)
        self.assertIn("DIS sections:", msg)
        self.assertIn(CS_DIS_1, msg)
        self.assertIn(CS_DIS_2, msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_discussion_without_lecture_is_refused(self) -> None:
        msg = self.add(CS_DIS_1)
        self.assertIn("LEC sections:", msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_lecture_with_companion_adds_both(self) -> None:
        msg = self.add(CS_LEC, companion_ids=[CS_DIS_1])
        self.assertIn("(LEC 001, DIS 201)", msg)
        self.assertEqual(set(self.schedule_ids()), {CS_LEC, CS_DIS_1})

    def test_discussion_can_be_added_when_lecture_present(self) -> None:
        self.add(CS_LEC, companion_ids=[CS_DIS_1])
        msg = self.add(CS_DIS_2)
        self.assertIn("Added", msg)
        self.assertEqual(set(self.schedule_ids()), {CS_LEC, CS_DIS_1, CS_DIS_2})

    def test_companion_of_other_course_is_rejected(self) -> None:
        msg = self.add(CS_LEC, companion_ids=[MATH_LEC])
        self.assertIn("is not a section of CS 2110", msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_unknown_companion(self) -> None:
        msg = self.add(CS_LEC, companion_ids=["CS-2110-999-0"])
        self.assertIn("not found", msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_section_rule_can_be_disabled(self) -> None:
        msg = self.add(CS_LEC, require_sections=False)
        self.assertIn("Added", msg)
        self.assertEqual(self.schedule_ids(), [CS_LEC])

    def test_conflicts_reported_but_course_added(self) -> None:
        self.add(MATH_LEC)
        msg = self.add(CS_LEC, companion_ids=[CS_DIS_1])

        self.assertIn("Added CS 2110", msg)
        self.assertIn("Time conflicts detected:", msg)
        self.assertIn("MATH 1920: Multivariable Calculus for Engineers", msg)
        self.assertIn("MW 10:10AM-11:25AM conflicts with MW 11:15AM-12:05PM", msg)
        self.assertEqual(set(self.schedule_ids()), {CS_LEC, CS_DIS_1, MATH_LEC})

    def test_re_adding_does_not_conflict_with_itself(self) -> None:
        self.add(MATH_LEC)
        msg = self.add(MATH_LEC, notes="again")
        self.assertNotIn("conflict", msg.lower())


class TestRemoveCourse(ToolsTestCase):
    def test_remove_all_sections(self) -> None:
        self.add(CS_LEC, companion_ids=[CS_DIS_1])
        self.add(MATH_LEC)

        msg = tools.remove_course_from_schedule(self.store, USER, "CS-2110")

        self.assertIn("Removed CS 2110", msg)
        self.assertIn("2 section(s)", msg)
        self.assertEqual(self.schedule_ids(), [MATH_LEC])

    def test_remove_other_users_untouched(self) -> None:
        self.add(MATH_LEC)
        tools.add_course_to_schedule(self.catalog, self.store, "bob", MATH_LEC)

        tools.remove_course_from_schedule(self.store, USER, "math 1920")

        self.assertEqual(self.schedule_ids(), [])
        self.assertEqual(self.schedule_ids("bob"), [MATH_LEC])

    def test_remove_not_in_schedule(self) -> None:
        msg = tools.remove_course_from_schedule(self.store, USER, "PHYS-1112")
        self.assertEqual(msg, "Course PHYS-1112 was not in your schedule.")

    def test_remove_malformed_key(self) -> None:
        msg = tools.remove_course_from_schedule(self.store, USER, "CS")
        self.assertIn("e.g. 'CS-2110'", msg)

    def test_parse_course_key(self) -> None:
        self.assertEqual(tools.parse_course_key("CS-2110"), ("CS", "2110"))
        self.assertEqual(tools.parse_course_key(" cs 2110 "), ("CS", "2110"))
        self.assertIsNone(tools.parse_course_key(""))


class TestCheckConflicts(ToolsTestCase):
    def test_needs_two_courses(self) -> None:
        self.add(MATH_LEC)
        msg = tools.check_schedule_conflicts(self.store, USER)
        self.assertEqual(msg, "You need at least 2 courses in your schedule to check for conflicts.")

    def test_cs_and_math_single_conflict(self) -> None:
        self.store.upsert(USER, CS_LEC)
        self.store.upsert(USER, MATH_LEC)

        result = tools.check_schedule_conflicts(self.store, USER)

        self.assertIsInstance(result, dict)
        assert isinstance(result, dict)
        self.assertEqual(result["conflict_count"], 1)
        conflict = result["conflicts"][0]
        self.assertEqual(conflict["course1"], "CS 2110: Object-Oriented Programming and Data Structures")
        self.assertEqual(conflict["course2"], "MATH 1920: Multivariable Calculus for Engineers")

    def test_no_conflicts(self) -> None:
        self.add(MATH_LEC)
        self.add(PHYS_LEC)
        msg = tools.check_schedule_conflicts(self.store, USER)
        self.assertEqual(msg, "No time conflicts found in your schedule!")


class TestViewSchedule(ToolsTestCase):
    def test_empty_schedule_gives_guidance(self) -> None:
        uploader = mock.Mock()
        msg = tools.view_my_schedule(self.store, USER, uploader=uploader)
        self.assertEqual(msg, tools.EMPTY_SCHEDULE_MSG)
        uploader.assert_not_called()

    def test_text_grouping(self) -> None:
        self.add(ENGL_SEM_2)
        self.add(MATH_LEC)

        text = tools.view_my_schedule(self.store, USER)

        self.assertTrue(text.startswith("Your Weekly Schedule (2 courses)"))
        monday = text.split("**Monday:**")[1].split("**Tuesday:**")[0]
        self.assertIn("11:15AM-12:05PM - MATH 1920: Multivariable Calculus for Engineers", monday)
        self.assertLess(monday.index("MATH 1920"), monday.index("ENGL 1100"))
        tuesday = text.split("**Tuesday:**")[1].split("**Wednesday:**")[0]
        self.assertIn("No classes", tuesday)
        self.assertNotIn("Visual Calendar", text)

    def test_uploaded_calendar_is_linked(self) -> None:
        self.add(MATH_LEC)
        uploader = mock.Mock(return_value="https://img.example/cal/download")

        text = tools.view_my_schedule(self.store, USER, uploader=uploader)

        self.assertIn("![Weekly Schedule](https://img.example/cal/download)", text)
        svg = uploader.call_args[0][0]
        self.assertTrue(svg.startswith("<svg "))
        self.assertIn(">MATH 1920</text>", svg)

    def test_upload_failure_falls_back_to_text(self) -> None:
        self.add(MATH_LEC)
        text = tools.view_my_schedule(self.store, USER, uploader=mock.Mock(return_value=None))
        self.assertIn("MATH 1920", text)
        self.assertNotIn("Visual Calendar", text)

    def test_upload_exception_falls_back_to_text(self) -> None:
        self.add(MATH_LEC)
        uploader = mock.Mock(side_effect=RuntimeError("host down"))
        with self.assertLogs("classplanner.tools", level="ERROR"):
            text = tools.view_my_schedule(self.store, USER, uploader=uploader)
        self.assertIn("MATH 1920", text)
        self.assertNotIn("Visual Calendar", text)


class TestCatalogTools(ToolsTestCase):
    def test_keyword_search(self) -> None:
        result = tools.search_courses(self.catalog, "calculus")
        self.assertIsInstance(result, dict)
        assert isinstance(result, dict)
        self.assertEqual([c["id"] for c in result["courses"]], [MATH_LEC])

    def test_keyword_search_skips_discussions(self) -> None:
        result = tools.search_courses(self.catalog, "object-oriented")
        assert isinstance(result, dict)
        self.assertEqual([c["id"] for c in result["courses"]], [CS_LEC])

    def test_search_no_results(self) -> None:
        self.assertEqual(tools.search_courses(self.catalog, "underwater basket weaving"),
                         "No courses found matching your query.")

    def test_semantic_index_ids_are_resolved(self) -> None:
        index = mock.Mock()
        index.query.return_value = [f"course-{PHYS_LEC}", f"course-{ENGL_SEM_1}"]

        result = tools.search_courses(self.catalog, "mechanics", limit=2, index=index)

        index.query.assert_called_once_with("mechanics", 2)
        assert isinstance(result, dict)
        self.assertEqual(result["count"], 2)
        self.assertEqual([c["id"] for c in result["courses"]], [PHYS_LEC, ENGL_SEM_1])

    def test_advanced_search(self) -> None:
        result = tools.advanced_course_search(self.catalog, SearchFilters(subject="engl"))
        assert isinstance(result, dict)
        self.assertEqual(result["count"], 2)
        self.assertEqual(result["filters"], {"subject": "engl"})

    def test_advanced_search_no_results(self) -> None:
        msg = tools.advanced_course_search(self.catalog, SearchFilters(subject="ZZZ"))
        self.assertEqual(msg, "No courses found matching your filters.")

    def test_details(self) -> None:
        one = tools.get_course_details(self.catalog, course_id=CS_LEC)
        assert isinstance(one, dict)
        self.assertEqual(one["meetings"], ["MW 10:10AM-11:25AM"])

        all_sections = tools.get_course_details(self.catalog, subject="cs", catalog_nbr="2110")
        assert isinstance(all_sections, dict)
        self.assertEqual(all_sections["total_sections"], 3)

        self.assertEqual(tools.get_course_details(self.catalog, course_id="X"), "Course X not found.")
        self.assertIn("Please provide", tools.get_course_details(self.catalog))


def _locked() -> OperationalError:
    return OperationalError("INSERT INTO user_schedules", {}, Exception("database is locked"))


class TestToolFailures(ToolsTestCase):
    """
    A failing database or search index turns into an "Error ..." message.
    """

    def test_search_index_failure(self) -> None:
        index = mock.Mock()
        index.query.side_effect = RuntimeError("vector index unreachable")

        with self.assertLogs("classplanner.tools", level="ERROR"):
            msg = tools.search_courses(self.catalog, "mechanics", index=index)

        self.assertEqual(msg, "Error searching courses: vector index unreachable")

    def test_advanced_search_database_failure(self) -> None:
        with mock.patch.object(self.catalog, "search", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = tools.advanced_course_search(self.catalog, SearchFilters(subject="CS"))
        self.assertTrue(msg.startswith("Error searching courses:"))

    def test_details_database_failure(self) -> None:
        with mock.patch.object(self.catalog, "get_by_id", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = tools.get_course_details(self.catalog, course_id=CS_LEC)
        self.assertTrue(msg.startswith("Error getting course details:"))

    def test_add_database_failure(self) -> None:
        with mock.patch.object(self.store, "upsert_many", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = self.add(MATH_LEC)

        self.assertTrue(msg.startswith("Error adding course to schedule:"))
        self.assertIn("database is locked", msg)
        self.assertEqual(self.schedule_ids(), [])

    def test_add_is_all_or_nothing(self) -> None:
        real_execute = Session.execute
        inserts = []

        def fail_second_insert(session, statement, *args, **kwargs):
            if isinstance(statement, Insert):
                inserts.append(statement)
                if len(inserts) == 2:
                    raise _locked()
            return real_execute(session, statement, *args, **kwargs)

        with mock.patch.object(Session, "execute", fail_second_insert):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = self.add(CS_LEC, companion_ids=[CS_DIS_1])

        self.assertEqual(len(inserts), 2)
        self.assertTrue(msg.startswith("Error"))
        self.assertEqual(self.schedule_ids(), [])

    def test_remove_database_failure(self) -> None:
        self.add(MATH_LEC)
        with mock.patch.object(self.store, "delete_by_key", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = tools.remove_course_from_schedule(self.store, USER, "MATH-1920")

        self.assertTrue(msg.startswith("Error removing course from schedule:"))
        self.assertEqual(self.schedule_ids(), [MATH_LEC])

    def test_view_database_failure(self) -> None:
        with mock.patch.object(self.store, "list_for_user", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = tools.view_my_schedule(self.store, USER)
        self.assertTrue(msg.startswith("Error viewing schedule:"))

    def test_conflict_check_database_failure(self) -> None:
        with mock.patch.object(self.store, "list_for_user", side_effect=_locked()):
            with self.assertLogs("classplanner.tools", level="ERROR"):
                msg = tools.check_schedule_conflicts(self.store, USER)
        self.assertTrue(msg.startswith("Error checking conflicts:"))


if __name__ == "__main__":
    unittest.main()
