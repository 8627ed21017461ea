"""Scoring engine: compares recorded answers with answer keys in one pass.

Everything here is pure. Malformed questions are excluded from both the
``correct`` and ``total`` side of every accumulation so an unscoreable item
can never inflate or deflate a percentage.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .config import DEFAULT_POINTS, OPTIONS_PER_QUESTION
from .errors import InvalidQuestionData
from .types import DIFFICULTIES, Question

log = logging.getLogger(__name__)


def round_percent(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 for an empty denominator."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def validate_question(q: Question) -> None:
    options = q.options or []
    if len(options) < OPTIONS_PER_QUESTION:
        raise InvalidQuestionData(q.id, f"expected {OPTIONS_PER_QUESTION} options, got {len(options)}")
    if isinstance(q.correct, bool) or not isinstance(q.correct, int):
        raise InvalidQuestionData(q.id, "missing correct option index")
    if not 0 <= q.correct < len(options):
        raise InvalidQuestionData(q.id, f"correct index {q.correct} out of range")


def _coerce_answer(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def is_correct(q: Question, answer: object) -> bool:
    chosen = _coerce_answer(answer)
    return chosen is not None and chosen == q.correct


@dataclass
class CategoryTally:
    correct: int = 0
    total: int = 0
    missed_concepts: List[str] = field(default_factory=list)

    def miss(self, concept: str) -> None:
        if concept not in self.missed_concepts:
            self.missed_concepts.append(concept)


@dataclass
class ScoreSheet:
    correct: int = 0
    total: int = 0
    earned_points: int = 0
    max_points: int = 0
    # dicts keep categories in first-seen order
    categories: Dict[str, CategoryTally] = field(default_factory=dict)
    difficulty: Dict[str, CategoryTally] = field(default_factory=dict)
    invalid: List[str] = field(default_factory=list)

    @property
    def score(self) -> int:
        return round_percent(self.correct, self.total)

    def category_percent(self, category: str) -> int:
        t = self.categories[category]
        return round_percent(t.correct, t.total)


def score_answers(
    questions: Sequence[Question],
    answers: Mapping[str, object],
    *,
    strict: bool = False,
) -> ScoreSheet:
    sheet = ScoreSheet(difficulty={d: CategoryTally() for d in DIFFICULTIES})
    for q in questions:
        try:
            validate_question(q)
        except InvalidQuestionData as exc:
            if strict:
                raise
            log.warning("skipping unscoreable question: %s", exc)
            sheet.invalid.append(str(q.id))
            continue

        ok = is_correct(q, answers.get(q.id))
        points = q.points if q.points and q.points > 0 else DEFAULT_POINTS
        cat = sheet.categories.setdefault(q.category, CategoryTally())
        diff = sheet.difficulty.setdefault(q.difficulty, CategoryTally())

        sheet.total += 1
        sheet.max_points += points
        cat.total += 1
        diff.total += 1
        if ok:
            sheet.correct += 1
            sheet.earned_points += points
            cat.correct += 1
            diff.correct += 1
        else:
            cat.miss(q.concept)
            diff.miss(q.concept)
    return sheet
