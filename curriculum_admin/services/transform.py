"""
Quiz document transformer.

The learner app reads one embedded document per quiz: quiz metadata plus every
question inline, in its own vocabulary (`fill_blank`, `order_words`, ...).
`encode_quiz_document` produces that document from authoring records and
`decode_quiz_document` recovers editable records from whatever was stored,
including shapes written by older versions of the console.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from ..schemas import (
    QUESTION_ADAPTER,
    CompositionQuestion,
    FillInQuestion,
    MatchingQuestion,
    OrderWordsQuestion,
    Question,
    Quiz,
    QuizType,
    SpellingQuestion,
)
from ..settings import settings
from .quiz_types import AUTHORING_TYPES, to_authoring, to_external


class UnknownQuestionTypeError(ValueError):
    def __init__(self, question_type: Any):
        super().__init__(f"Unknown question type: {question_type!r}")
        self.question_type = question_type


# ---------- write path ----------

def _clean(values: Iterable[str]) -> List[str]:
    return [v.strip() for v in values if v and v.strip()]


def _encode_fill_in(q: FillInQuestion) -> Dict[str, Any]:
    body: Dict[str, Any] = {}
    # nested arrays are not storable, so options are keyed by blank index
    blank_options = {str(i): list(b.options) for i, b in enumerate(q.blanks) if b.options}
    if blank_options:
        body["blankOptions"] = blank_options
    body["answers"] = _clean(b.answer for b in q.blanks)
    return body


def _encode_spelling(q: SpellingQuestion) -> Dict[str, Any]:
    answers = _clean(q.answers)
    if not answers and q.answer and q.answer.strip():
        answers = [q.answer.strip()]
    return {"answers": answers}


def _encode_matching(q: MatchingQuestion) -> Dict[str, Any]:
    pairs: Dict[str, str] = {}
    for pair in q.pairs:
        left, right = pair.left.strip(), pair.right.strip()
        if left and right:
            pairs[left] = right
    return {"pairs": pairs}


def _encode_order_words(q: OrderWordsQuestion) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "order": list(q.correct_order if q.correct_order is not None else q.words),
    }
    if q.correct_answer:
        body["correctAnswer"] = q.correct_answer
    if q.instruction_title:
        body["instructionTitle"] = q.instruction_title
    if q.additional_words:
        body["additionalWords"] = list(q.additional_words)
    if q.punctuation:
        body["punctuation"] = list(q.punctuation)
    return body


def _encode_composition(q: CompositionQuestion) -> Dict[str, Any]:
    # graded outside the learner app
    return {"answers": []}


_ENCODERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "fill-in": _encode_fill_in,
    "spelling": _encode_spelling,
    "matching": _encode_matching,
    "order-words": _encode_order_words,
    "composition": _encode_composition,
}
if set(_ENCODERS) != set(AUTHORING_TYPES):
    raise RuntimeError(f"quiz types without an encoder: {sorted(set(AUTHORING_TYPES) - set(_ENCODERS))}")


def as_question(question: Union[Question, Mapping[str, Any]]) -> Question:
    if not isinstance(question, Mapping):
        return question
    kind = question.get("type")
    if kind not in _ENCODERS:
        raise UnknownQuestionTypeError(kind)
    return QUESTION_ADAPTER.validate_python(question)


def question_points(question: Question) -> Union[int, float]:
    return question.points if question.points is not None else 1


def encode_question(question: Union[Question, Mapping[str, Any]]) -> Dict[str, Any]:
    q = as_question(question)
    encoder = _ENCODERS.get(getattr(q, "type", None))
    if encoder is None:
        raise UnknownQuestionTypeError(getattr(q, "type", None))

    prompt = q.prompt
    if isinstance(q, FillInQuestion):
        prompt = (q.prompt or "").strip() or (q.sentence or "").strip()

    body: Dict[str, Any] = {
        "id": q.id,
        "prompt": prompt,
        "type": to_external(q.type),
        "points": question_points(q),
    }
    body.update(encoder(q))
    if q.explanation:
        body["hint"] = q.explanation
    return body


def encode_quiz_document(
    quiz: Quiz,
    questions: Iterable[Union[Question, Mapping[str, Any]]],
    *,
    duration_minutes: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the learner-app document for `quiz`. Questions are written in
    ascending `order`; an unknown question type raises UnknownQuestionTypeError.
    """
    ordered = sorted((as_question(q) for q in questions), key=lambda q: q.order)
    encoded = [encode_question(q) for q in ordered]

    doc: Dict[str, Any] = {
        "id": quiz.id,
        "sectionId": quiz.section_id,
        "title": quiz.title,
        "type": to_external(quiz.quiz_type),
        "description": "",
        "durationMinutes": duration_minutes if duration_minutes is not None else settings.QUIZ_DURATION_MINUTES,
        "totalPoints": sum(q["points"] for q in encoded),
        "questions": encoded,
    }
    # learner app ignores these; the console needs them to reopen the quiz
    doc.update({
        "gradeId": quiz.grade_id,
        "unitId": quiz.unit_id,
        "lessonId": quiz.lesson_id,
        "quizType": quiz.quiz_type,
        "isPublished": quiz.is_published,
    })
    if quiz.ai_evaluation_prompt:
        doc["aiEvaluationPrompt"] = quiz.ai_evaluation_prompt
    return doc


# ---------- read path ----------

def quiz_type_of(doc: Mapping[str, Any]) -> QuizType:
    explicit = doc.get("quizType")
    if explicit in AUTHORING_TYPES:
        return explicit
    return to_authoring(doc.get("type"))


def decode_quiz(doc: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> Quiz:
    """Quiz record only; questions are left untouched."""
    data: Dict[str, Any] = {**(defaults or {}), **doc}
    data["quizType"] = quiz_type_of(doc)
    for key in ("id", "gradeId", "unitId", "lessonId", "sectionId"):
        if not isinstance(data.get(key), str):
            data[key] = str(data[key]) if data.get(key) is not None else ""
    try:
        return Quiz.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[quiz] quiz {data['id']!r} has malformed fields, using defaults: {e.error_count()} errors")
        title = data.get("title")
        return Quiz(
            id=data["id"],
            grade_id=data["gradeId"],
            unit_id=data["unitId"],
            lesson_id=data["lessonId"],
            section_id=data["sectionId"],
            title=title if isinstance(title, str) else "",
            quiz_type=data["quizType"],
            is_published=data.get("isPublished") is True,
        )


def _blank_options(answers: List[Any], stored: Any, quiz_id: str) -> Dict[str, List[Any]]:
    """
    `blankOptions` is keyed by blank index while `answers` drops empty blanks,
    so the two only line up when every option list sits on an answer it
    contains. Anything else is discarded whole.
    """
    if not isinstance(stored, Mapping) or not stored:
        return {}
    aligned: Dict[str, List[Any]] = {}
    for key, values in stored.items():
        index = int(key) if isinstance(key, str) and key.isdigit() else -1
        if not isinstance(values, list) or not 0 <= index < len(answers) or answers[index] not in values:
            logger.warning(f"[quiz] {quiz_id}: blankOptions do not line up with answers, dropped")
            return {}
        aligned[str(index)] = list(values)
    return aligned


def normalize_question(
    raw: Mapping[str, Any], quiz_id: str, fallback_type: QuizType, position: int = 0
) -> Dict[str, Any]:
    """Rewrite one stored question into the authoring shape. `raw` is not modified."""
    q: Dict[str, Any] = dict(raw)
    q["quizId"] = quiz_id
    # learner documents keep questions in order but drop the index
    if not isinstance(raw.get("order"), int):
        q["order"] = position + 1
    if raw.get("hint") and not raw.get("explanation"):
        q["explanation"] = raw["hint"]
    kind = raw.get("type") or fallback_type
    q["type"] = to_authoring(kind) if kind in ("fill_blank", "order_words") else kind

    if q["type"] == "matching":
        pairs = raw.get("pairs")
        if isinstance(pairs, Mapping):
            q["pairs"] = [{"id": left, "left": left, "right": right} for left, right in pairs.items()]

    elif q["type"] == "order-words":
        order = raw.get("order")
        if isinstance(order, list) and not raw.get("correctOrder") and not raw.get("words"):
            q["correctOrder"] = list(order)
            q["words"] = list(order)

    elif q["type"] == "fill-in":
        answers = raw.get("answers")
        if isinstance(answers, list) and not raw.get("blanks"):
            options = _blank_options(answers, raw.get("blankOptions"), quiz_id)
            blanks = []
            for index, answer in enumerate(answers):
                blank: Dict[str, Any] = {"id": f"blank_{index}", "answer": answer}
                if str(index) in options:
                    blank["options"] = options[str(index)]
                blanks.append(blank)
            q["blanks"] = blanks

    elif q["type"] == "spelling":
        answers = raw.get("answers")
        if isinstance(answers, list):
            q["answers"] = list(answers)
        elif raw.get("answer"):
            q["answers"] = [raw["answer"]]

    return q


def decode_questions(doc: Mapping[str, Any], quiz_id: str, quiz_type: QuizType) -> List[Question]:
    raw_questions = doc.get("questions")
    if not isinstance(raw_questions, list):
        return []

    out: List[Question] = []
    for index, raw in enumerate(raw_questions):
        if not isinstance(raw, Mapping):
            logger.warning(f"[quiz] {quiz_id}: question #{index} is not an object, skipped")
            continue
        try:
            out.append(QUESTION_ADAPTER.validate_python(normalize_question(raw, quiz_id, quiz_type, index)))
        except ValidationError as e:
            logger.warning(f"[quiz] {quiz_id}: question #{index} ({raw.get('type')!r}) unreadable, skipped: {e.error_count()} errors")
    return sorted(out, key=lambda q: q.order)


def decode_quiz_document(
    doc: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None
) -> Tuple[Quiz, List[Question]]:
    """Recover (Quiz, questions) for editing. Never raises on odd shapes."""
    quiz = decode_quiz(doc, defaults)
    return quiz, decode_questions(doc, quiz.id, quiz.quiz_type)
