"""
Quizzes are stored with their questions embedded, in the learner app format:
grades/{g}/units/{u}/lessons/{l}/sections/{s}/quizzes/{quizId}
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..schemas import Question, Quiz, QuizDraft
from .audit import record_admin_action
from .store import DocumentStore, doc_path, new_id, now_iso
from .transform import decode_quiz, decode_quiz_document, encode_quiz_document


class QuizNotFoundError(LookupError):
    pass


def quizzes_path(grade_id: str, unit_id: str, lesson_id: str, section_id: str) -> str:
    return doc_path("grades", grade_id, "units", unit_id, "lessons", lesson_id, "sections", section_id, "quizzes")


def _parents(grade_id: str, unit_id: str, lesson_id: str, section_id: str) -> Dict[str, str]:
    return {"gradeId": grade_id, "unitId": unit_id, "lessonId": lesson_id, "sectionId": section_id}


def _prepare_questions(quiz_id: str, questions: Sequence[Question]) -> List[Question]:
    # ids are positional; re-saving a quiz rewrites them
    return [
        q.model_copy(update={"id": f"{quiz_id}_q{n}", "quiz_id": quiz_id, "order": q.order or n})
        for n, q in enumerate(questions, start=1)
    ]


async def create_quiz_with_questions(
    store: DocumentStore,
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    section_id: str,
    draft: QuizDraft,
    questions: Sequence[Question],
    admin_id: str,
) -> Quiz:
    quiz = Quiz(
        id=new_id(),
        grade_id=grade_id,
        unit_id=unit_id,
        lesson_id=lesson_id,
        section_id=section_id,
        **draft.model_dump(exclude_none=True),
    )
    doc = encode_quiz_document(quiz, _prepare_questions(quiz.id, questions))
    now = now_iso()
    doc["createdAt"] = now
    doc["updatedAt"] = now

    await store.set(doc_path(quizzes_path(grade_id, unit_id, lesson_id, section_id), quiz.id), doc)
    await record_admin_action(
        store, admin_id=admin_id, action="create", entity="quizzes", entity_id=quiz.id,
        metadata={"title": quiz.title, "questionCount": len(questions)},
    )
    logger.info(f"[quiz] created {quiz.id} ({quiz.quiz_type}) with {len(questions)} questions")
    return quiz


async def update_quiz_with_questions(
    store: DocumentStore,
    grade_id: str,
    unit_id: str,
    lesson_id: str,
    section_id: str,
    quiz_id: str,
    updates: QuizDraft,
    questions: Sequence[Question],
    admin_id: str,
) -> Quiz:
    path = doc_path(quizzes_path(grade_id, unit_id, lesson_id, section_id), quiz_id)
    existing = await store.get(path)
    if existing is None:
        raise QuizNotFoundError(path)

    current = decode_quiz(existing, {"id": quiz_id, **_parents(grade_id, unit_id, lesson_id, section_id)})
    quiz = current.model_copy(update={
        **updates.model_dump(exclude_unset=True),
        "id": quiz_id,
        "grade_id": grade_id,
        "unit_id": unit_id,
        "lesson_id": lesson_id,
        "section_id": section_id,
    })
    doc = encode_quiz_document(quiz, _prepare_questions(quiz_id, questions))
    now = now_iso()
    doc["createdAt"] = existing.get("createdAt") or now
    doc["updatedAt"] = now

    # full overwrite so cleared optional fields do not linger
    await store.set(path, doc)
    await record_admin_action(
        store, admin_id=admin_id, action="update", entity="quizzes", entity_id=quiz_id,
        metadata={"title": quiz.title, "questionCount": len(questions)},
    )
    logger.info(f"[quiz] updated {quiz_id} with {len(questions)} questions")
    return quiz


async def delete_quiz(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str, admin_id: str
) -> None:
    path = doc_path(quizzes_path(grade_id, unit_id, lesson_id, section_id), quiz_id)
    existing = await store.get(path)
    title = existing.get("title", "Unknown") if existing else "Unknown"
    await store.delete(path)
    await record_admin_action(
        store, admin_id=admin_id, action="delete", entity="quizzes", entity_id=quiz_id,
        metadata={"title": title},
    )


async def get_quiz_document(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str
) -> Optional[Dict[str, Any]]:
    return await store.get(doc_path(quizzes_path(grade_id, unit_id, lesson_id, section_id), quiz_id))


async def get_quiz_with_questions(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str
) -> Optional[Tuple[Quiz, List[Question]]]:
    doc = await get_quiz_document(store, grade_id, unit_id, lesson_id, section_id, quiz_id)
    if doc is None:
        return None
    return decode_quiz_document(doc, {"id": quiz_id, **_parents(grade_id, unit_id, lesson_id, section_id)})


async def get_quizzes_for_section(
    store: DocumentStore, grade_id: str, unit_id: str, lesson_id: str, section_id: str
) -> List[Quiz]:
    """Quiz records only; questions are decoded when a single quiz is opened."""
    docs = await store.list(quizzes_path(grade_id, unit_id, lesson_id, section_id))
    parents = _parents(grade_id, unit_id, lesson_id, section_id)
    return [decode_quiz(d, parents) for d in docs]
