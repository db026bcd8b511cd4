"""
Hierarchical curriculum cache.

Grades arrive through a live subscription; every other level is a flattened
snapshot computed by fanning out one fetch per record of its parent level:

    grades -> units -> lessons -> sections -> quizzes

A level is recomputed when the identity of its parent snapshot changes or when
its own generation is bumped by `refresh_*`. Recomputation replaces the
snapshot with a new list, so the level below sees a new parent and follows.
"""
from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from loguru import logger

from ..schemas import CurriculumSnapshot, Grade, Lesson, Quiz, Section, Unit

LEVELS = ("units", "lessons", "sections", "quizzes")
PARENT_LEVEL = {"units": "grades", "lessons": "units", "sections": "lessons", "quizzes": "sections"}


@dataclass(frozen=True)
class CurriculumSource:
    """Per-level fetch collaborators the cache fans out over."""
    listen_grades: Callable[[Callable[[List[Grade]], None]], Callable[[], Any]]
    units_for: Callable[[Grade], Awaitable[List[Unit]]]
    lessons_for: Callable[[Unit], Awaitable[List[Lesson]]]
    sections_for: Callable[[Lesson], Awaitable[List[Section]]]
    quizzes_for: Callable[[Section], Awaitable[List[Quiz]]]

    def fetcher(self, level: str) -> Callable[[Any], Awaitable[List[Any]]]:
        return {
            "units": self.units_for,
            "lessons": self.lessons_for,
            "sections": self.sections_for,
            "quizzes": self.quizzes_for,
        }[level]


@dataclass
class _Level:
    items: List[Any] = field(default_factory=list)
    generation: int = 0
    seen_generation: int = -1
    parent_ref: Optional[List[Any]] = None
    # identifies the newest fan-out; older ones are discarded on completion
    token: int = 0


class CurriculumCache:
    def __init__(self, source: CurriculumSource) -> None:
        self._source = source
        self.grades: List[Grade] = []
        self._levels: Dict[str, _Level] = {name: _Level() for name in LEVELS}
        self._inflight = 0
        self._primed = False
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], Any]] = None

    # ---------- snapshots ----------

    @property
    def all_units(self) -> List[Unit]:
        return self._levels["units"].items

    @property
    def all_lessons(self) -> List[Lesson]:
        return self._levels["lessons"].items

    @property
    def all_sections(self) -> List[Section]:
        return self._levels["sections"].items

    @property
    def all_quizzes(self) -> List[Quiz]:
        return self._levels["quizzes"].items

    @property
    def is_loading(self) -> bool:
        return not self._primed or self._inflight > 0

    def generation(self, level: str) -> int:
        return self._levels[level].generation

    def snapshot(self) -> CurriculumSnapshot:
        return CurriculumSnapshot(
            grades=self.grades,
            units=self.all_units,
            lessons=self.all_lessons,
            sections=self.all_sections,
            quizzes=self.all_quizzes,
            is_loading=self.is_loading,
        )

    # ---------- lifecycle ----------

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._source.listen_grades(self._on_grades_push)
            logger.info("[cache] listening to grades")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_grades_push(self, grades: List[Grade]) -> None:
        task = asyncio.get_running_loop().create_task(self.apply_grades(grades))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------- triggers ----------

    async def apply_grades(self, grades: Iterable[Grade]) -> None:
        self.grades = list(grades)
        await self._cascade("units")

    async def refresh_units(self) -> None:
        await self._invalidate("units")

    async def refresh_lessons(self) -> None:
        await self._invalidate("lessons")

    async def refresh_sections(self) -> None:
        await self._invalidate("sections")

    async def refresh_quizzes(self) -> None:
        await self._invalidate("quizzes")

    async def refresh(self, level: str) -> None:
        if level not in self._levels:
            raise KeyError(level)
        await self._invalidate(level)

    async def _invalidate(self, level: str) -> None:
        self._levels[level].generation += 1
        await self._cascade(level)

    # ---------- recomputation ----------

    def _parent_snapshot(self, level: str) -> List[Any]:
        parent = PARENT_LEVEL[level]
        return self.grades if parent == "grades" else self._levels[parent].items

    def _is_stale(self, level: str) -> bool:
        state = self._levels[level]
        return state.parent_ref is not self._parent_snapshot(level) or state.seen_generation != state.generation

    async def _cascade(self, start: str) -> None:
        self._inflight += 1
        try:
            for level in LEVELS[LEVELS.index(start):]:
                if not self._is_stale(level):
                    break
                if not await self._recompute(level):
                    break
        finally:
            self._inflight -= 1
            self._primed = True

    async def _recompute(self, level: str) -> bool:
        """Returns False when a newer recomputation superseded this one."""
        state = self._levels[level]
        parents = self._parent_snapshot(level)
        state.token += 1
        token = state.token
        state.parent_ref = parents
        state.seen_generation = state.generation
        state.items = []

        if not parents:
            return True

        fetch = self._source.fetcher(level)
        try:
            branches = await asyncio.gather(*(self._branch(level, fetch, p) for p in parents))
            items = [item for branch in branches for item in branch]
        except Exception:
            logger.exception(f"[cache] failed to load {level}, clearing level")
            items = []

        if token != state.token:
            logger.debug(f"[cache] discarding stale {level} result (token {token} < {state.token})")
            return False
        state.items = items
        logger.debug(f"[cache] {level}: {len(items)} from {len(parents)} parents")
        return True

    async def _branch(self, level: str, fetch: Callable[[Any], Awaitable[List[Any]]], parent: Any) -> List[Any]:
        try:
            return await fetch(parent)
        except Exception as e:
            logger.warning(f"[cache] {level} for {getattr(parent, 'id', parent)!r} failed: {e}")
            return []

    # ---------- views ----------

    def outline(self) -> List[Dict[str, Any]]:
        """Nested view of the flat snapshots. Children whose parent is not cached are skipped."""
        units = _group(self.all_units, lambda u: u.grade_id)
        lessons = _group(self.all_lessons, lambda l: (l.grade_id, l.unit_id))
        sections = _group(self.all_sections, lambda s: (s.grade_id, s.unit_id, s.lesson_id))
        quizzes = _group(self.all_quizzes, lambda q: (q.grade_id, q.unit_id, q.lesson_id, q.section_id))

        tree = []
        for grade in sorted(self.grades, key=lambda g: g.name):
            unit_nodes = []
            for unit in sorted(units[grade.id], key=lambda u: u.number):
                lesson_nodes = []
                for lesson in sorted(lessons[(grade.id, unit.id)], key=lambda l: l.order):
                    section_nodes = []
                    for section in sorted(sections[(grade.id, unit.id, lesson.id)], key=lambda s: s.title):
                        section_quizzes = quizzes[(grade.id, unit.id, lesson.id, section.id)]
                        section_nodes.append({
                            **section.to_document(),
                            "quizzes": [q.to_document() for q in sorted(section_quizzes, key=lambda q: q.title)],
                        })
                    lesson_nodes.append({**lesson.to_document(), "sections": section_nodes})
                unit_nodes.append({**unit.to_document(), "lessons": lesson_nodes})
            tree.append({**grade.to_document(), "units": unit_nodes})
        return tree


def _group(items: Iterable[Any], key: Callable[[Any], Any]) -> Dict[Any, List[Any]]:
    out: Dict[Any, List[Any]] = defaultdict(list)
    for item in items:
        out[key(item)].append(item)
    return out
