from fastapi import APIRouter, Depends, HTTPException
from ..schemas import Quiz, QuizPayload, QuizWithQuestions
from ..services import quiz_builder
from ..services.cache import CurriculumCache
from ..services.store import DocumentStore
from ..services.transform import UnknownQuestionTypeError
from .deps import admin_id, get_cache, get_store

router = APIRouter(prefix="/grades/{grade_id}/units/{unit_id}/lessons/{lesson_id}/sections/{section_id}/quizzes")

@router.get("", response_model=list[Quiz])
async def list_quizzes(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str,
    store: DocumentStore = Depends(get_store),
):
    return await quiz_builder.get_quizzes_for_section(store, grade_id, unit_id, lesson_id, section_id)

@router.post("", response_model=Quiz, status_code=201)
async def create_quiz(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str,
    payload: QuizPayload,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
    admin: str = Depends(admin_id),
):
    try:
        quiz = await quiz_builder.create_quiz_with_questions(
            store, grade_id, unit_id, lesson_id, section_id, payload.quiz, payload.questions, admin
        )
    except UnknownQuestionTypeError as e:
        raise HTTPException(400, str(e))
    await cache.refresh_quizzes()
    return quiz

@router.get("/{quiz_id}", response_model=QuizWithQuestions)
async def get_quiz(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str,
    store: DocumentStore = Depends(get_store),
):
    found = await quiz_builder.get_quiz_with_questions(store, grade_id, unit_id, lesson_id, section_id, quiz_id)
    if found is None:
        raise HTTPException(404, "Quiz not found")
    quiz, questions = found
    return QuizWithQuestions(quiz=quiz, questions=questions)

@router.get("/{quiz_id}/document")
async def get_quiz_document(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str,
    store: DocumentStore = Depends(get_store),
):
    doc = await quiz_builder.get_quiz_document(store, grade_id, unit_id, lesson_id, section_id, quiz_id)
    if doc is None:
        raise HTTPException(404, "Quiz not found")
    return doc

@router.put("/{quiz_id}", response_model=Quiz)
async def update_quiz(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str,
    payload: QuizPayload,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
    admin: str = Depends(admin_id),
):
    try:
        quiz = await quiz_builder.update_quiz_with_questions(
            store, grade_id, unit_id, lesson_id, section_id, quiz_id, payload.quiz, payload.questions, admin
        )
    except quiz_builder.QuizNotFoundError:
        raise HTTPException(404, "Quiz not found")
    except UnknownQuestionTypeError as e:
        raise HTTPException(400, str(e))
    await cache.refresh_quizzes()
    return quiz

@router.delete("/{quiz_id}")
async def delete_quiz(
    grade_id: str, unit_id: str, lesson_id: str, section_id: str, quiz_id: str,
    store: DocumentStore = Depends(get_store),
    cache: CurriculumCache = Depends(get_cache),
    admin: str = Depends(admin_id),
):
    await quiz_builder.delete_quiz(store, grade_id, unit_id, lesson_id, section_id, quiz_id, admin)
    await cache.refresh_quizzes()
    return {"deleted": True, "id": quiz_id}
