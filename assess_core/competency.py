# assess_core/competency.py
from __future__ import annotations
from . import config

_ORDER = ("Beginner", "Intermediate", "Advanced", "Expert")


def competency_level(score: float) -> str:
    s = float(score)
    for floor, label in config.COMPETENCY_BANDS:
        if s >= floor: return label
    return config.COMPETENCY_FLOOR


def competency_rank(label: str) -> int:
    try:
        return _ORDER.index(label)
    except ValueError:
        return 0
