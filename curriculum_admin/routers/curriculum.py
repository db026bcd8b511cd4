from fastapi import APIRouter, Depends, HTTPException

from ..schemas import (
    CurriculumSnapshot, Grade, GradeDraft, GradeUpdate, Lesson, LessonDraft, LessonUpdate,
    Section, SectionDraft, SectionUpdate, Unit, UnitDraft, UnitUpdate,
)
from ..services import hierarchy
from ..services.cache import LEVELS, CurriculumCache
from ..services.store import DocumentStore
from .deps import admin_id, get_cache, get_store

router = APIRouter()

def _found(record, what: str):
    if record is None:
        raise HTTPException(404, f"{what} not found")
    return record

@router.get("/curriculum", response_model=CurriculumSnapshot)
def curriculum(cache: CurriculumCache = Depends(get_cache)):
    return cache.snapshot()

@router.get("/curriculum/tree")
def curriculum_tree(cache: CurriculumCache = Depends(get_cache)):
    return {"grades": cache.outline(), "is_loading": cache.is_loading}

@router.post("/curriculum/refresh/{level}")
async def refresh(level: str, cache: CurriculumCache = Depends(get_cache)):
    if level not in LEVELS:
        raise HTTPException(404, f"Unknown level '{level}'. Expected one of: {', '.join(LEVELS)}")
    await cache.refresh(level)
    return {"level": level, "generation": cache.generation(level)}

# ---------- grades (live-subscribed, no refresh needed) ----------

@router.post("/grades", response_model=Grade, status_code=201)
async def create_grade(
    draft: GradeDraft,
    store: DocumentStore = Depends(get_store),
    admin: str = Depends(admin_id),
):
    return await hierarchy.create_grade(store, draft, admin)

@router.get("/grades/{grade_id}", response_model=Grade)
async def get_grade(grade_id: str, store: DocumentStore = Depends(get_store)):
    return _found(await hierarchy.get_grade(store, grade_id), "Grade")

@router.patch("/grades/{grade_id}", response_model=Grade)
async def update_grade(
    grade_id: str,
    changes: GradeUpdate,
    store: DocumentStore = Depends(get_store),
    admin: str = Depends(admin_id),
):
    return await hierarchy.update_grade(store, grade_id, changes, admin)

@router.delete("/grades/{grade_id}")
async def delete_grade(
    grade_id: str,
    store: DocumentStore = Depends(get_store),
    admin: str = Depends(admin_id),
):
    removed = await hierarchy.remove_grade(store, grade_id, admin)
    return {"deleted": True, "id": grade_id, "removed": removed}

# ---------- units ----------

@router.post("/grades/{grade_id}/units", response_model=Unit, status_code=201)
async def create_unit(
    grade_id: str,
    draft: UnitDraft,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    unit = await hierarchy.create_unit(store, grade_id, draft)
    await cache.refresh_units()
    return unit

@router.get("/grades/{grade_id}/units/{unit_id}", response_model=Unit)
async def get_unit(grade_id: str, unit_id: str, store: DocumentStore = Depends(get_store)):
    return _found(await hierarchy.get_unit(store, grade_id, unit_id), "Unit")

@router.patch("/grades/{grade_id}/units/{unit_id}", response_model=Unit)
async def update_unit(
    grade_id: str,
    unit_id: str,
    changes: UnitUpdate,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    unit = await hierarchy.update_unit(store, grade_id, unit_id, changes)
    await cache.refresh_units()
    return unit

@router.delete("/grades/{grade_id}/units/{unit_id}")
async def delete_unit(
    grade_id: str,
    unit_id: str,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    removed = await hierarchy.remove_unit(store, grade_id, unit_id)
    await cache.refresh_units()
    return {"deleted": True, "id": unit_id, "removed": removed}

# ---------- lessons ----------

@router.post("/grades/{grade_id}/units/{unit_id}/lessons", response_model=Lesson, status_code=201)
async def create_lesson(
    grade_id: str,
    unit_id: str,
    draft: LessonDraft,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    lesson = await hierarchy.create_lesson(store, grade_id, unit_id, draft)
    await cache.refresh_lessons()
    return lesson

@router.get("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}", response_model=Lesson)
async def get_lesson(grade_id: str, unit_id: str, lesson_id: str, store: DocumentStore = Depends(get_store)):
    return _found(await hierarchy.get_lesson(store, grade_id, unit_id, lesson_id), "Lesson")

@router.patch("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}", response_model=Lesson)
async def update_lesson(
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    changes: LessonUpdate,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    lesson = await hierarchy.update_lesson(store, grade_id, unit_id, lesson_id, changes)
    await cache.refresh_lessons()
    return lesson

@router.delete("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}")
async def delete_lesson(
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    removed = await hierarchy.remove_lesson(store, grade_id, unit_id, lesson_id)
    await cache.refresh_lessons()
    return {"deleted": True, "id": lesson_id, "removed": removed}

# ---------- sections ----------

@router.post("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}/sections", response_model=Section, status_code=201)
async def create_section(
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    draft: SectionDraft,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    section = await hierarchy.create_section(store, grade_id, unit_id, lesson_id, draft)
    await cache.refresh_sections()
    return section

@router.get("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}/sections/{section_id}", response_model=Section)
async def get_section(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str,
    store: DocumentStore = Depends(get_store),
):
    return _found(await hierarchy.get_section(store, grade_id, unit_id, lesson_id, section_id), "Section")

@router.patch("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}/sections/{section_id}", response_model=Section)
async def update_section(
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    section_id: str,
    changes: SectionUpdate,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    section = await hierarchy.update_section(store, grade_id, unit_id, lesson_id, section_id, changes)
    await cache.refresh_sections()
    return section

@router.delete("/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}/sections/{section_id}")
async def delete_section(
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    section_id: str,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
):
    removed = await hierarchy.remove_section(store, grade_id, unit_id, lesson_id, section_id)
    await cache.refresh_sections()
    return {"deleted": True, "id": section_id, "removed": removed}
