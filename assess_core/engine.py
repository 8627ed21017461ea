# assess_core/engine.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from . import config
from .competency import competency_level
from .gaps import partition
from .recommend import recommendations
from .scoring import ScoreSheet, round_percent, score_answers
from .types import AssessmentResult, CategoryScore, DifficultyStat, Question

log = logging.getLogger(__name__)


def _category_scores(sheet: ScoreSheet) -> list[CategoryScore]:
    out = []
    for category, tally in sheet.categories.items():
        pct = round_percent(tally.correct, tally.total)
        out.append(CategoryScore(
            category=category,
            correct=tally.correct,
            total=tally.total,
            score=pct,
            competency_level=competency_level(pct),
        ))
    return out


def _difficulty_stats(sheet: ScoreSheet) -> list[DifficultyStat]:
    return [
        DifficultyStat(difficulty=d, correct=t.correct, total=t.total, topics=list(t.missed_concepts))
        for d, t in sheet.difficulty.items()
    ]


def evaluate(
    questions: Sequence[Question],
    answers: Mapping[str, object],
    *,
    time_spent: int = 0,
    passing_score: Optional[int] = None,
    threshold: Optional[int] = None,
    strict: bool = False,
    completed_at: Optional[str] = None,
) -> AssessmentResult:
    """Score one attempt and derive competencies, gaps and recommendations.

    This is the only scoring path: the API persists its output and the
    console client shows it directly. Given the same questions, answers and
    ``completed_at`` it returns equal results.
    """
    sheet = score_answers(questions, answers, strict=strict)
    gaps, strengths = partition(sheet, threshold)
    pass_mark = config.PASSING_SCORE if passing_score is None else int(passing_score)
    score = sheet.score

    if sheet.invalid:
        log.warning("scored %d questions, skipped %d malformed", sheet.total, len(sheet.invalid))

    return AssessmentResult(
        total_questions=sheet.total,
        correct_answers=sheet.correct,
        score=score,
        time_spent=max(0, int(time_spent)),
        category_scores=_category_scores(sheet),
        skill_gaps=gaps,
        strengths=strengths,
        recommendations=recommendations(gaps),
        difficulty_stats=_difficulty_stats(sheet),
        earned_points=sheet.earned_points,
        max_points=sheet.max_points,
        passing_score=pass_mark,
        passed=sheet.total > 0 and score >= pass_mark,
        invalid_questions=list(sheet.invalid),
        completed_at=completed_at or datetime.now(timezone.utc).isoformat(),
    )
