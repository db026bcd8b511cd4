"""
Nested curriculum collections:
grades/{gradeId}/units/{unitId}/lessons/{lessonId}/sections/{sectionId}/quizzes/{quizId}
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from ..schemas import (
    Grade, GradeDraft, GradeUpdate, Lesson, LessonDraft, LessonUpdate, Record, Section, SectionDraft,
    SectionUpdate, Unit, UnitDraft, UnitUpdate,
)
from .audit import record_admin_action
from .cache import CurriculumSource
from .quiz_builder import get_quizzes_for_section
from .store import DocumentStore, doc_path, new_id, now_iso

R = TypeVar("R", bound=Record)

CHILD_COLLECTION = {"grades": "units", "units": "lessons", "lessons": "sections", "sections": "quizzes"}


def grade_path(grade_id: str) -> str:
    return doc_path("grades", grade_id)

def unit_path(grade_id: str, unit_id: str) -> str:
    return doc_path("grades", grade_id, "units", unit_id)

def lesson_path(grade_id: str, unit_id: str, lesson_id: str) -> str:
    return doc_path(unit_path(grade_id, unit_id), "lessons", lesson_id)

def section_path(grade_id: str, unit_id: str, lesson_id: str, section_id: str) -> str:
    return doc_path(lesson_path(grade_id, unit_id, lesson_id), "sections", section_id)


def parse_records(model: Type[R], docs: Iterable[Mapping[str, Any]], parents: Optional[Dict[str, str]] = None) -> List[R]:
    """Parse stored documents, filling parent ids from the path; malformed ones are skipped."""
    out: List[R] = []
    for d in docs:
        try:
            out.append(model.model_validate({**(parents or {}), **d}))
        except ValidationError as e:
            logger.warning(f"[hierarchy] skipping malformed {model.__name__} {d.get('id')!r}: {e.error_count()} errors")
    return out


# ---------- listing ----------

async def list_grades(store: DocumentStore) -> List[Grade]:
    return parse_records(Grade, await store.list("grades"))

async def list_units(store: DocumentStore, grade_id: str) -> List[Unit]:
    docs = await store.list(doc_path(grade_path(grade_id), "units"))
    return parse_records(Unit, docs, {"gradeId": grade_id})

async def list_lessons(store: DocumentStore, grade_id: str, unit_id: str) -> List[Lesson]:
    docs = await store.list(doc_path(unit_path(grade_id, unit_id), "lessons"))
    return parse_records(Lesson, docs, {"gradeId": grade_id, "unitId": unit_id})

async def list_sections(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str) -> List[Section]:
    docs = await store.list(doc_path(lesson_path(grade_id, unit_id, lesson_id), "sections"))
    return parse_records(Section, docs, {"gradeId": grade_id, "unitId": unit_id, "lessonId": lesson_id})


def curriculum_source(store: DocumentStore) -> CurriculumSource:
    def listen_grades(callback: Callable[[List[Grade]], None]) -> Callable[[], Any]:
        return store.subscribe("grades", lambda docs: callback(parse_records(Grade, docs)))

    return CurriculumSource(
        listen_grades=listen_grades,
        units_for=lambda g: list_units(store, g.id),
        lessons_for=lambda u: list_lessons(store, u.grade_id, u.id),
        sections_for=lambda l: list_sections(store, l.grade_id, l.unit_id, l.id),
        quizzes_for=lambda s: get_quizzes_for_section(store, s.grade_id, s.unit_id, s.lesson_id, s.id),
    )


# ---------- create ----------

async def _write_new(store: DocumentStore, path: str, record: Record) -> None:
    now = now_iso()
    await store.set(path, {**record.to_document(), "createdAt": now, "updatedAt": now})


def _fields(draft: BaseModel) -> Dict[str, Any]:
    return draft.model_dump(exclude_none=True)


async def create_grade(store: DocumentStore, draft: GradeDraft, admin_id: str) -> Grade:
    grade = Grade(id=new_id(), **_fields(draft))
    await _write_new(store, grade_path(grade.id), grade)
    await record_admin_action(
        store, admin_id=admin_id, action="create", entity="grades", entity_id=grade.id,
        metadata={"name": grade.name},
    )
    return grade


async def create_unit(store: DocumentStore, grade_id: str, draft: UnitDraft) -> Unit:
    unit = Unit(id=new_id(), grade_id=grade_id, **_fields(draft))
    await _write_new(store, unit_path(grade_id, unit.id), unit)
    return unit


async def next_lesson_order(store: DocumentStore, grade_id: str, unit_id: str) -> int:
    existing = await list_lessons(store, grade_id, unit_id)
    return max((l.order for l in existing), default=0) + 1


async def create_lesson(store: DocumentStore, grade_id: str, unit_id: str, draft: LessonDraft) -> Lesson:
    fields = _fields(draft)
    if fields.get("order") is None:
        fields["order"] = await next_lesson_order(store, grade_id, unit_id)
    lesson = Lesson(id=new_id(), grade_id=grade_id, unit_id=unit_id, **fields)
    await _write_new(store, lesson_path(grade_id, unit_id, lesson.id), lesson)
    logger.info(f"[hierarchy] lesson {lesson.id} '{lesson.title}' order={lesson.order}")
    return lesson


async def create_section(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, draft: SectionDraft
) -> Section:
    section = Section(id=new_id(), grade_id=grade_id, unit_id=unit_id, lesson_id=lesson_id, **_fields(draft))
    await _write_new(store, section_path(grade_id, unit_id, lesson_id, section.id), section)
    return section


# ---------- get / update ----------

async def _get(store: DocumentStore, model: Type[R], path: str, parents: Optional[Dict[str, str]] = None) -> Optional[R]:
    doc = await store.get(path)
    if doc is None:
        return None
    found = parse_records(model, [doc], parents)
    return found[0] if found else None


async def _update(store: DocumentStore, model: Type[R], path: str, changes: BaseModel, parents: Optional[Dict[str, str]] = None) -> R:
    """Merge the fields the caller set; raises DocumentNotFoundError when the document is missing."""
    # null only clears fields that are optional on the record
    fields = {
        to_camel(k): v
        for k, v in changes.model_dump(exclude_unset=True).items()
        if v is not None or (k in model.model_fields and model.model_fields[k].default is None)
    }
    await store.update(path, {**fields, "updatedAt": now_iso()})
    doc = await store.get(path)
    return model.model_validate({**(parents or {}), **(doc or {})})


async def get_grade(store: DocumentStore, grade_id: str) -> Optional[Grade]:
    return await _get(store, Grade, grade_path(grade_id))

async def get_unit(store: DocumentStore, grade_id: str, unit_id: str) -> Optional[Unit]:
    return await _get(store, Unit, unit_path(grade_id, unit_id), {"gradeId": grade_id})

async def get_lesson(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str) -> Optional[Lesson]:
    return await _get(store, Lesson, lesson_path(grade_id, unit_id, lesson_id), {"gradeId": grade_id, "unitId": unit_id})

async def get_section(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str) -> Optional[Section]:
    return await _get(
        store, Section, section_path(grade_id, unit_id, lesson_id, section_id),
        {"gradeId": grade_id, "unitId": unit_id, "lessonId": lesson_id},
    )


async def update_grade(store: DocumentStore, grade_id: str, changes: GradeUpdate, admin_id: str) -> Grade:
    grade = await _update(store, Grade, grade_path(grade_id), changes)
    await record_admin_action(
        store, admin_id=admin_id, action="update", entity="grades", entity_id=grade_id,
        metadata=changes.model_dump(exclude_unset=True),
    )
    return grade

async def update_unit(store: DocumentStore, grade_id: str, unit_id: str, changes: UnitUpdate) -> Unit:
    return await _update(store, Unit, unit_path(grade_id, unit_id), changes, {"gradeId": grade_id})

async def update_lesson(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, changes: LessonUpdate) -> Lesson:
    return await _update(
        store, Lesson, lesson_path(grade_id, unit_id, lesson_id), changes, {"gradeId": grade_id, "unitId": unit_id},
    )

async def update_section(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str, changes: SectionUpdate
) -> Section:
    return await _update(
        store, Section, section_path(grade_id, unit_id, lesson_id, section_id), changes,
        {"gradeId": grade_id, "unitId": unit_id, "lessonId": lesson_id},
    )


# ---------- cascading delete ----------

async def delete_subtree(store: DocumentStore, path: str) -> int:
    """Delete the document at `path` and every descendant. Returns the number removed."""
    collection = path.split("/")[-2]
    removed = 0
    child = CHILD_COLLECTION.get(collection)
    if child:
        children = await store.list(doc_path(path, child))
        counts = await asyncio.gather(*(delete_subtree(store, doc_path(path, child, c["id"])) for c in children))
        removed += sum(counts)
    await store.delete(path)
    return removed + 1


async def remove_grade(store: DocumentStore, grade_id: str, admin_id: str) -> int:
    removed = await delete_subtree(store, grade_path(grade_id))
    await record_admin_action(
        store, admin_id=admin_id, action="delete", entity="grades", entity_id=grade_id,
        metadata={"documentsRemoved": removed},
    )
    return removed


async def remove_unit(store: DocumentStore, grade_id: str, unit_id: str) -> int:
    return await delete_subtree(store, unit_path(grade_id, unit_id))


async def remove_lesson(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str) -> int:
    return await delete_subtree(store, lesson_path(grade_id, unit_id, lesson_id))


async def remove_section(store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str) -> int:
    return await delete_subtree(store, section_path(grade_id, unit_id, lesson_id, section_id))
