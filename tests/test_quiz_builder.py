"""Tests for quizzes stored with embedded questions."""
import pytest

from curriculum_admin.schemas import (
    Blank,
    FillInQuestion,
    MatchingPair,
    MatchingQuestion,
    QuizDraft,
    SpellingQuestion,
)
from curriculum_admin.services import quiz_builder

PARENTS = ("g1", "u1", "l1", "s1")
QUIZ_DIR = "grades/g1/units/u1/lessons/l1/sections/s1/quizzes"


def draft(**kw) -> QuizDraft:
    return QuizDraft(title="Pets", quiz_type="fill-in", **kw)


def questions():
    return [
        FillInQuestion(prompt="A ___", blanks=[Blank(id="b", answer="cat")], points=2),
        FillInQuestion(prompt="B ___", blanks=[Blank(id="b", answer="dog")]),
    ]


class TestCreate:
    async def test_writes_learner_document(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin-1")

        doc = await store.get(f"{QUIZ_DIR}/{quiz.id}")
        assert doc["type"] == "fill_blank"
        assert doc["quizType"] == "fill-in"
        assert doc["sectionId"] == "s1"
        assert doc["gradeId"] == "g1"
        assert doc["totalPoints"] == 3
        assert [q["id"] for q in doc["questions"]] == [f"{quiz.id}_q1", f"{quiz.id}_q2"]
        assert [q["answers"] for q in doc["questions"]] == [["cat"], ["dog"]]
        assert doc["createdAt"] == doc["updatedAt"]

    async def test_admin_action_recorded(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin-1")

        logs = await store.list("adminLogs")
        assert len(logs) == 1
        assert logs[0]["entityId"] == quiz.id
        assert logs[0]["metadata"] == {"title": "Pets", "questionCount": 2}

    async def test_explicit_order_is_kept(self, store) -> None:
        qs = [
            SpellingQuestion(answers=["second"], order=2),
            SpellingQuestion(answers=["first"], order=1),
        ]
        quiz = await quiz_builder.create_quiz_with_questions(
            store, *PARENTS, QuizDraft(title="Spell", quiz_type="spelling"), qs, "admin"
        )
        doc = await quiz_builder.get_quiz_document(store, *PARENTS, quiz.id)
        assert [q["answers"] for q in doc["questions"]] == [["first"], ["second"]]


class TestReadBack:
    async def test_get_with_questions(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin")

        found_quiz, found_questions = await quiz_builder.get_quiz_with_questions(store, *PARENTS, quiz.id)

        assert found_quiz.id == quiz.id
        assert found_quiz.quiz_type == "fill-in"
        assert [q.quiz_id for q in found_questions] == [quiz.id, quiz.id]
        assert [q.blanks[0].answer for q in found_questions] == ["cat", "dog"]

    async def test_missing_quiz(self, store) -> None:
        assert await quiz_builder.get_quiz_with_questions(store, *PARENTS, "nope") is None

    async def test_section_listing_derives_kind_only(self, store) -> None:
        await store.set(f"{QUIZ_DIR}/legacy", {"title": "Old", "type": "matching", "questions": [{"bogus": 1}]})
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin")

        listed = {q.id: q for q in await quiz_builder.get_quizzes_for_section(store, *PARENTS)}

        assert listed["legacy"].quiz_type == "matching"
        assert listed["legacy"].grade_id == "g1"
        assert listed[quiz.id].title == "Pets"


class TestUpdateAndDelete:
    async def test_update_reencodes_and_keeps_created_at(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin")
        path = f"{QUIZ_DIR}/{quiz.id}"
        created_at = (await store.get(path))["createdAt"]
        await store.update(path, {"createdAt": "2024-01-01T00:00:00+00:00"})

        updated = await quiz_builder.update_quiz_with_questions(
            store, *PARENTS, quiz.id,
            QuizDraft(title="Pairs", quiz_type="matching", is_published=True),
            [MatchingQuestion(pairs=[MatchingPair(id="1", left="cat", right="kitten")], points=5)],
            "admin",
        )

        doc = await store.get(path)
        assert created_at
        assert doc["createdAt"] == "2024-01-01T00:00:00+00:00"
        assert updated.title == "Pairs"
        assert doc["type"] == "matching"
        assert doc["isPublished"] is True
        assert doc["totalPoints"] == 5
        assert doc["questions"][0]["pairs"] == {"cat": "kitten"}

    async def test_update_can_clear_optional_fields(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(
            store, *PARENTS, draft(ai_evaluation_prompt="grade it"), questions(), "admin"
        )
        path = f"{QUIZ_DIR}/{quiz.id}"
        await store.update(path, {"legacyField": True})

        updated = await quiz_builder.update_quiz_with_questions(
            store, *PARENTS, quiz.id, draft(ai_evaluation_prompt=None), questions(), "admin"
        )

        doc = await store.get(path)
        assert updated.ai_evaluation_prompt is None
        assert "aiEvaluationPrompt" not in doc
        assert "legacyField" not in doc
        assert doc["createdAt"] <= doc["updatedAt"]

    async def test_update_missing_quiz(self, store) -> None:
        with pytest.raises(quiz_builder.QuizNotFoundError):
            await quiz_builder.update_quiz_with_questions(store, *PARENTS, "nope", draft(), [], "admin")

    async def test_delete(self, store) -> None:
        quiz = await quiz_builder.create_quiz_with_questions(store, *PARENTS, draft(), questions(), "admin")

        await quiz_builder.delete_quiz(store, *PARENTS, quiz.id, "admin")

        assert await quiz_builder.get_quiz_document(store, *PARENTS, quiz.id) is None
        actions = [l["action"] for l in await store.list("adminLogs")]
        assert sorted(actions) == ["create", "delete"]
