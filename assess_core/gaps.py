from __future__ import annotations
from typing import List, Optional, Tuple

from . import config
from .scoring import ScoreSheet
from .types import SkillGap, Strength


def _threshold(threshold: Optional[int]) -> int:
    return config.GAP_THRESHOLD if threshold is None else int(threshold)


def derive_skill_gaps(sheet: ScoreSheet, threshold: Optional[int] = None) -> List[SkillGap]:
    """Categories strictly below the pass threshold, in first-seen order.

    Topics are the distinct concepts of wrong or unanswered questions.
    """
    cut = _threshold(threshold)
    out: List[SkillGap] = []
    for category, tally in sheet.categories.items():
        pct = sheet.category_percent(category)
        if pct < cut:
            out.append(SkillGap(skill=category, score=pct, topics=list(tally.missed_concepts)))
    return out


def derive_strengths(sheet: ScoreSheet, threshold: Optional[int] = None) -> List[Strength]:
    cut = _threshold(threshold)
    return [
        Strength(category=c, score=sheet.category_percent(c))
        for c in sheet.categories
        if sheet.category_percent(c) >= cut
    ]


def partition(sheet: ScoreSheet, threshold: Optional[int] = None) -> Tuple[List[SkillGap], List[Strength]]:
    return derive_skill_gaps(sheet, threshold), derive_strengths(sheet, threshold)
