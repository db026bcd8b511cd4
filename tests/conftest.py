"""Shared fixtures: an in-memory document store and a fake curriculum tree."""
import asyncio
from collections import Counter
from typing import Dict, List, Optional, Set

import pytest

from curriculum_admin.schemas import Grade, Lesson, Quiz, Section, Unit
from curriculum_admin.services.cache import CurriculumSource
from curriculum_admin.services.store import MemoryDocumentStore


class FakeTree:
    """
    Two grades, three units, four lessons, five sections, six quizzes.
    Fetches are counted per level; parents listed in `fail` raise.
    """

    def __init__(self) -> None:
        self.grades = [Grade(id="g1", name="Grade 1"), Grade(id="g2", name="Grade 2")]
        self.units: Dict[str, list] = {
            "g1": [Unit(id="u1", grade_id="g1", number=1), Unit(id="u2", grade_id="g1", number=2)],
            "g2": [Unit(id="u3", grade_id="g2", number=1)],
        }
        self.lessons: Dict[str, list] = {
            "u1": [
                Lesson(id="l2", grade_id="g1", unit_id="u1", title="Vocabulary", order=2),
                Lesson(id="l1", grade_id="g1", unit_id="u1", title="Grammar", order=1),
            ],
            "u2": [Lesson(id="l3", grade_id="g1", unit_id="u2", title="Passages", order=1)],
            "u3": [Lesson(id="l4", grade_id="g2", unit_id="u3", title="Literature", order=1)],
        }
        self.sections: Dict[str, list] = {
            "l1": [Section(id="s1", grade_id="g1", unit_id="u1", lesson_id="l1", title="Nouns")],
            "l2": [
                Section(id="s2", grade_id="g1", unit_id="u1", lesson_id="l2", title="Animals"),
                Section(id="s3", grade_id="g1", unit_id="u1", lesson_id="l2", title="Colours"),
            ],
            "l3": [Section(id="s4", grade_id="g1", unit_id="u2", lesson_id="l3", title="Reading")],
            "l4": [Section(id="s5", grade_id="g2", unit_id="u3", lesson_id="l4", title="Poems")],
        }
        self.quizzes: Dict[str, list] = {
            "s1": [self.quiz("q1", "s1", "l1", "u1", "g1"), self.quiz("q2", "s1", "l1", "u1", "g1")],
            "s2": [self.quiz("q3", "s2", "l2", "u1", "g1")],
            "s3": [self.quiz("q4", "s3", "l2", "u1", "g1")],
            "s4": [self.quiz("q5", "s4", "l3", "u2", "g1")],
            "s5": [self.quiz("q6", "s5", "l4", "u3", "g2")],
        }
        self.calls: Counter = Counter()
        self.fail: Set[str] = set()
        self.gate: Optional[asyncio.Event] = None

    @staticmethod
    def quiz(quiz_id: str, section_id: str, lesson_id: str, unit_id: str, grade_id: str) -> Quiz:
        return Quiz(
            id=quiz_id, grade_id=grade_id, unit_id=unit_id, lesson_id=lesson_id,
            section_id=section_id, title=f"Quiz {quiz_id}",
        )

    def _fetch(self, level: str, table: Dict[str, list]):
        async def fetch(parent) -> List:
            self.calls[level] += 1
            if parent.id in self.fail:
                raise RuntimeError(f"{level} for {parent.id} unavailable")
            result = table.get(parent.id, [])
            result = list(result) if result is not None else None
            gate = self.gate
            if gate is not None:
                await gate.wait()
            await asyncio.sleep(0)
            return result
        return fetch

    def source(self) -> CurriculumSource:
        return CurriculumSource(
            listen_grades=lambda callback: (lambda: None),
            units_for=self._fetch("units", self.units),
            lessons_for=self._fetch("lessons", self.lessons),
            sections_for=self._fetch("sections", self.sections),
            quizzes_for=self._fetch("quizzes", self.quizzes),
        )


@pytest.fixture
def tree() -> FakeTree:
    return FakeTree()


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()
