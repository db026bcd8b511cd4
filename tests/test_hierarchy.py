"""Tests for the in-memory document store and the hierarchy services."""
import pytest

from curriculum_admin.schemas import (
    GradeDraft,
    GradeUpdate,
    LessonDraft,
    LessonUpdate,
    SectionDraft,
    SectionUpdate,
    UnitDraft,
    UnitUpdate,
)
from curriculum_admin.services import hierarchy
from curriculum_admin.services.cache import CurriculumCache
from curriculum_admin.services.store import DocumentNotFoundError, doc_path, parent_of


class TestMemoryStore:
    async def test_documents_carry_their_id(self, store) -> None:
        await store.set("grades/g1", {"name": "One"})
        assert await store.get("grades/g1") == {"id": "g1", "name": "One"}
        assert await store.get("grades/missing") is None

    async def test_list_only_direct_children(self, store) -> None:
        await store.set("grades/g1", {"name": "One"})
        await store.set("grades/g1/units/u1", {"number": 1})
        assert [d["id"] for d in await store.list("grades")] == ["g1"]
        assert [d["id"] for d in await store.list("grades/g1/units")] == ["u1"]

    async def test_update_merges_and_requires_document(self, store) -> None:
        await store.set("grades/g1", {"name": "One", "description": "first"})
        await store.update("grades/g1", {"name": "Uno"})
        assert await store.get("grades/g1") == {"id": "g1", "name": "Uno", "description": "first"}
        with pytest.raises(DocumentNotFoundError):
            await store.update("grades/g2", {"name": "Two"})

    async def test_returned_documents_are_copies(self, store) -> None:
        await store.set("grades/g1", {"tags": ["a"]})
        doc = await store.get("grades/g1")
        doc["tags"].append("b")
        assert (await store.get("grades/g1"))["tags"] == ["a"]

    async def test_subscribe_pushes_current_and_changes(self, store) -> None:
        seen = []
        unsubscribe = store.subscribe("grades", lambda docs: seen.append([d["id"] for d in docs]))
        await store.set("grades/g1", {"name": "One"})
        await store.set("grades/g1/units/u1", {"number": 1})
        await store.delete("grades/g1")
        unsubscribe()
        await store.set("grades/g2", {"name": "Two"})

        assert seen == [[], ["g1"], []]

    def test_paths(self) -> None:
        assert doc_path("grades", "g1", "units") == "grades/g1/units"
        assert parent_of("grades/g1/units/u1") == "grades/g1/units"
        assert parent_of("grades") == ""


class TestHierarchy:
    async def test_create_chain_and_list(self, store) -> None:
        grade = await hierarchy.create_grade(store, GradeDraft(name="Grade 4"), "admin-1")
        unit = await hierarchy.create_unit(store, grade.id, UnitDraft(number=1))
        lesson = await hierarchy.create_lesson(store, grade.id, unit.id, LessonDraft(title="Grammar"))
        section = await hierarchy.create_section(store, grade.id, unit.id, lesson.id, SectionDraft(title="Verbs"))

        assert [g.id for g in await hierarchy.list_grades(store)] == [grade.id]
        assert (await hierarchy.list_units(store, grade.id))[0].grade_id == grade.id
        listed = await hierarchy.list_sections(store, grade.id, unit.id, lesson.id)
        assert [(s.id, s.lesson_id, s.title) for s in listed] == [(section.id, lesson.id, "Verbs")]

        stored = await store.get(hierarchy.lesson_path(grade.id, unit.id, lesson.id))
        assert stored["unitId"] == unit.id
        assert stored["isPublished"] is False
        assert "createdAt" in stored and "updatedAt" in stored

    async def test_grade_creation_is_audited(self, store) -> None:
        grade = await hierarchy.create_grade(store, GradeDraft(name="Grade 4"), "admin-1")
        logs = await store.list("adminLogs")
        assert [(l["adminId"], l["action"], l["entity"], l["entityId"]) for l in logs] == [
            ("admin-1", "create", "grades", grade.id),
        ]

    async def test_lesson_order_is_max_plus_one(self, store) -> None:
        assert await hierarchy.next_lesson_order(store, "g1", "u1") == 1
        first = await hierarchy.create_lesson(store, "g1", "u1", LessonDraft(title="Grammar"))
        await hierarchy.create_lesson(store, "g1", "u1", LessonDraft(title="Vocabulary", order=7))
        third = await hierarchy.create_lesson(store, "g1", "u1", LessonDraft(title="Passages"))
        other_unit = await hierarchy.create_lesson(store, "g1", "u2", LessonDraft(title="Grammar"))

        assert first.order == 1
        assert third.order == 8
        assert other_unit.order == 1

    async def test_parent_ids_filled_from_path(self, store) -> None:
        await store.set("grades/g1/units/u1/lessons/legacy", {"title": "Grammar", "order": 3})
        lessons = await hierarchy.list_lessons(store, "g1", "u1")
        assert [(l.id, l.grade_id, l.unit_id) for l in lessons] == [("legacy", "g1", "u1")]

    async def test_malformed_documents_are_skipped(self, store) -> None:
        await store.set("grades/g1/units/ok", {"number": 2})
        await store.set("grades/g1/units/bad", {"number": "two"})
        assert [u.id for u in await hierarchy.list_units(store, "g1")] == ["ok"]

    async def test_update_merges_only_sent_fields(self, store) -> None:
        lesson = await hierarchy.create_lesson(store, "g1", "u1", LessonDraft(title="Grammar"))
        path = hierarchy.lesson_path("g1", "u1", lesson.id)
        created_at = (await store.get(path))["createdAt"]
        await store.update(path, {"updatedAt": "2024-01-01T00:00:00+00:00"})

        updated = await hierarchy.update_lesson(store, "g1", "u1", lesson.id, LessonUpdate(order=5, is_published=True))

        stored = await store.get(path)
        assert (updated.title, updated.order, updated.is_published) == ("Grammar", 5, True)
        assert stored["isPublished"] is True
        assert stored["createdAt"] == created_at
        assert stored["updatedAt"] > "2024-01-01T00:00:00+00:00"

    async def test_update_each_level(self, store) -> None:
        grade = await hierarchy.create_grade(store, GradeDraft(name="Grade 4"), "admin-1")
        unit = await hierarchy.create_unit(store, grade.id, UnitDraft(number=1))
        lesson = await hierarchy.create_lesson(store, grade.id, unit.id, LessonDraft(title="Grammar"))
        section = await hierarchy.create_section(store, grade.id, unit.id, lesson.id, SectionDraft(title="Verbs"))

        await hierarchy.update_grade(store, grade.id, GradeUpdate(name="Grade Four"), "admin-1")
        await hierarchy.update_unit(store, grade.id, unit.id, UnitUpdate(number=3))
        await hierarchy.update_section(
            store, grade.id, unit.id, lesson.id, section.id, SectionUpdate(video_link="https://v/1"),
        )

        assert (await hierarchy.get_grade(store, grade.id)).name == "Grade Four"
        assert (await hierarchy.get_unit(store, grade.id, unit.id)).number == 3
        found = await hierarchy.get_section(store, grade.id, unit.id, lesson.id, section.id)
        assert (found.title, found.video_link) == ("Verbs", "https://v/1")
        actions = sorted(l["action"] for l in await store.list("adminLogs"))
        assert actions == ["create", "update"]

    async def test_update_null_clears_optional_fields_only(self, store) -> None:
        section = await hierarchy.create_section(
            store, "g1", "u1", "l1", SectionDraft(title="Verbs", description="Action words"),
        )
        grade = await hierarchy.create_grade(store, GradeDraft(name="Grade 4", is_published=True), "admin")

        cleared = await hierarchy.update_section(store, "g1", "u1", "l1", section.id, SectionUpdate(description=None))
        kept = await hierarchy.update_grade(store, grade.id, GradeUpdate(is_published=None), "admin")

        assert (cleared.title, cleared.description) == ("Verbs", None)
        assert kept.is_published is True

    async def test_update_missing_document(self, store) -> None:
        with pytest.raises(DocumentNotFoundError):
            await hierarchy.update_unit(store, "g1", "nope", UnitUpdate(number=2))
        assert await hierarchy.get_unit(store, "g1", "nope") is None

    async def test_cascading_delete(self, store) -> None:
        await store.set("grades/g1", {"name": "One"})
        await store.set("grades/g1/units/u1", {"number": 1})
        await store.set("grades/g1/units/u1/lessons/l1", {"title": "Grammar"})
        await store.set("grades/g1/units/u1/lessons/l1/sections/s1", {"title": "Nouns"})
        await store.set("grades/g1/units/u1/lessons/l1/sections/s1/quizzes/q1", {"title": "Quiz"})
        await store.set("grades/g1/units/u2", {"number": 2})
        await store.set("grades/g2", {"name": "Two"})

        removed = await hierarchy.remove_unit(store, "g1", "u1")

        assert removed == 4
        assert await store.get("grades/g1/units/u1/lessons/l1/sections/s1/quizzes/q1") is None
        assert [u["id"] for u in await store.list("grades/g1/units")] == ["u2"]

        assert await hierarchy.remove_grade(store, "g1", "admin") == 2
        assert [g["id"] for g in await store.list("grades")] == ["g2"]


class TestCacheOverStore:
    async def test_live_grades_drive_the_cache(self, store) -> None:
        await store.set("grades/g1", {"name": "One"})
        await store.set("grades/g1/units/u1", {"number": 1})
        await store.set("grades/g1/units/u1/lessons/l1", {"title": "Grammar", "order": 1})
        await store.set("grades/g1/units/u1/lessons/l1/sections/s1", {"title": "Nouns"})
        await store.set(
            "grades/g1/units/u1/lessons/l1/sections/s1/quizzes/q1",
            {"title": "Nouns quiz", "type": "order_words"},
        )
        cache = CurriculumCache(hierarchy.curriculum_source(store))

        cache.start()
        await cache.wait_idle()

        assert [q.id for q in cache.all_quizzes] == ["q1"]
        assert cache.all_quizzes[0].quiz_type == "order-words"
        assert cache.all_quizzes[0].section_id == "s1"

        await store.set("grades/g2", {"name": "Two"})
        await store.set("grades/g2/units/u9", {"number": 1})
        await cache.wait_idle()
        await cache.refresh_units()

        assert sorted(u.id for u in cache.all_units) == ["u1", "u9"]
        await cache.stop()
