"""Per-question answer audit in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any, Mapping, Sequence
import csv
import io

from .scoring import is_correct
from .types import Question

_FIELDS: tuple[str, ...] = (
    "question_id",
    "category",
    "concept",
    "difficulty",
    "chosen",
    "correct",
    "is_correct",
    "points",
)


def answer_events(questions: Sequence[Question], answers: Mapping[str, Any]) -> List[Dict[str, Any]]:
    events = []
    for q in questions:
        chosen = answers.get(q.id)
        events.append({
            "question_id": q.id,
            "category": q.category,
            "concept": q.concept,
            "difficulty": q.difficulty,
            "chosen": chosen,
            "correct": q.correct,
            "is_correct": is_correct(q, chosen),
            "points": q.points,
        })
    return events


def _normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = event.get(key)
        if key in {"chosen", "correct"}:
            try:
                out[key] = int(val)
            except (TypeError, ValueError):
                out[key] = -1
        elif key == "points":
            try:
                out[key] = int(val)
            except (TypeError, ValueError):
                out[key] = 1
        elif key == "is_correct":
            out[key] = bool(val)
        else:
            out[key] = "" if val is None else str(val)
    return out


def to_json(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a JSON-safe payload for audit export; unanswered is ``-1``."""

    normalized: List[Dict[str, Any]] = [_normalize_event(evt or {}) for evt in events]
    return {"events": normalized}


def to_csv(events: Iterable[Dict[str, Any]]) -> str:
    normalized = [_normalize_event(evt or {}) for evt in events]
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in normalized:
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["answer_events", "to_json", "to_csv"]
