"""Running counters kept on assessments and users.

Only the single successful persistence path of a submission may call these;
a retried or duplicate submit must never reach them twice.
"""
from __future__ import annotations
from typing import Any, Dict, List, Mapping

from .types import AssessmentResult


def blank_assessment_analytics() -> Dict[str, Any]:
    return {
        "total_attempts": 0,
        "average_score": 0.0,
        "average_time_spent": 0.0,
        "skill_gaps_identified": {},
    }


def _running_mean(prev: float, n_before: int, value: float) -> float:
    return (prev * n_before + value) / (n_before + 1)


def apply_to_assessment(analytics: Mapping[str, Any] | None, result: AssessmentResult) -> Dict[str, Any]:
    out = blank_assessment_analytics()
    out.update(dict(analytics or {}))
    n = int(out["total_attempts"])
    out["average_score"] = round(_running_mean(float(out["average_score"]), n, result.score), 2)
    out["average_time_spent"] = round(_running_mean(float(out["average_time_spent"]), n, result.time_spent), 2)
    out["total_attempts"] = n + 1
    gaps = dict(out.get("skill_gaps_identified") or {})
    for gap in result.skill_gaps:
        gaps[gap.skill] = int(gaps.get(gap.skill, 0)) + 1
    out["skill_gaps_identified"] = gaps
    return out


def apply_to_user(history: List[Mapping[str, Any]]) -> Dict[str, Any]:
    scores = [float(h.get("score", 0)) for h in history]
    return {
        "total_assessments": len(scores),
        "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
    }
