from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence
from urllib.parse import quote

from . import config
from .competency import competency_level
from .types import SkillGap

log = logging.getLogger(__name__)

_GAP_FOLLOWUPS: tuple[str, ...] = (
    "Practice more hands-on coding exercises",
    "Review fundamental concepts in weak areas",
)

_NO_GAP_LINES: tuple[str, ...] = (
    "Great job! Continue practicing to maintain your skills",
    "Consider taking on more challenging projects",
    "Share your knowledge with others",
)


def recommendations(gaps: Sequence[SkillGap]) -> List[str]:
    if not gaps:
        return list(_NO_GAP_LINES)
    focus = ", ".join(g.skill for g in gaps)
    return [f"Focus on improving {focus}", *_GAP_FOLLOWUPS]


def course_link(skill: str) -> str:
    return f"/courses?skill={quote(skill, safe='')}"


def learning_path(gaps: Sequence[SkillGap]) -> Dict[str, Any]:
    """Personalised course outline covering every skill gap.

    The course level follows the weakest gap, so a learner scoring 20% in one
    area is not pointed at advanced material.
    """
    if not gaps:
        return {"courses": [], "gaps": []}

    weakest = min(gaps, key=lambda g: g.score)
    skills = [g.skill for g in gaps]
    course = {
        "title": "Personalized Learning Path",
        "description": f"Course focusing on: {', '.join(skills)}",
        "modules": [f"{s} Fundamentals" for s in skills],
        "estimated_hours": len(skills) * config.HOURS_PER_GAP,
        "level": competency_level(weakest.score),
    }
    per_gap = [
        {"skill": g.skill, "score": g.score, "topics": list(g.topics), "link": course_link(g.skill)}
        for g in gaps
    ]
    log.debug("learning path for %d gaps, weakest=%s", len(gaps), weakest.skill)
    return {"courses": [course], "gaps": per_gap}
