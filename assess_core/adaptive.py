from __future__ import annotations
from statistics import mean
from typing import Sequence

from . import config
from .types import DIFFICULTIES


def recommend_difficulty(recent_scores: Sequence[float], current: str = "medium") -> str:
    """Step one level up or down based on the mean of the latest scores."""
    cur = current if current in DIFFICULTIES else "medium"
    window = [float(s) for s in list(recent_scores)[-config.ADAPTIVE_WINDOW:]]
    if not window:
        return cur
    idx = DIFFICULTIES.index(cur)
    avg = mean(window)
    if avg >= config.ADAPTIVE_PROMOTE_AT:
        idx += 1
    elif avg < config.ADAPTIVE_DEMOTE_AT:
        idx -= 1
    return DIFFICULTIES[max(0, min(len(DIFFICULTIES) - 1, idx))]
