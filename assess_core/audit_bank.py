from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List

from . import config
from .errors import InvalidQuestionData
from .question_bank import ROLES, load_general_bank, load_role_bank
from .scoring import validate_question
from .types import DIFFICULTIES, Question


def _blank_category() -> dict[str, object]:
    return {
        "difficulty": {d: 0 for d in DIFFICULTIES},
        "total": 0,
        "concepts": [],
    }


def bank_questions() -> List[Question]:
    out: List[Question] = []
    for role, rows in load_role_bank().items():
        for i, r in enumerate(rows):
            out.append(Question.from_dict(dict(r, id=f"{role}#{i}")))
    for i, r in enumerate(load_general_bank()):
        out.append(Question.from_dict(dict(r, id=f"general#{i}")))
    return out


def audit_questions(questions: Iterable[Question]) -> dict[str, object]:
    coverage: dict[str, dict[str, object]] = {}
    invalid: list[dict[str, str]] = []
    seen_text: dict[str, str] = {}
    duplicates: list[str] = []

    for q in questions:
        try:
            validate_question(q)
        except InvalidQuestionData as exc:
            invalid.append({"id": str(q.id), "reason": exc.reason})
            continue

        data = coverage.setdefault(q.category, _blank_category())
        data["total"] += 1  # type: ignore[operator]
        diff = data["difficulty"]  # type: ignore[assignment]
        diff[q.difficulty] = diff.get(q.difficulty, 0) + 1
        concepts = data["concepts"]  # type: ignore[assignment]
        if q.concept not in concepts:
            concepts.append(q.concept)

        key = q.text.strip().lower()
        if key in seen_text:
            duplicates.append(f"{q.id} repeats {seen_text[key]}")
        else:
            seen_text[key] = str(q.id)

    warnings: list[str] = []
    for category, data in coverage.items():
        if category not in ROLES:
            continue
        total = data["total"]
        if total < config.BANK_MIN_PER_ROLE:  # type: ignore[operator]
            warnings.append(f"{category} has {total} questions (<{config.BANK_MIN_PER_ROLE})")
    for bad in invalid:
        warnings.append(f"{bad['id']} is not scoreable: {bad['reason']}")
    for dup in duplicates:
        warnings.append(f"duplicate question text: {dup}")

    return {"coverage": coverage, "invalid": invalid, "warnings": warnings}


def print_report(summary: dict[str, object]) -> None:
    coverage: dict[str, dict[str, object]] = summary["coverage"]  # type: ignore[assignment]
    print("=== Bank Coverage ===")
    for category in sorted(coverage):
        data = coverage[category]
        diff = data["difficulty"]  # type: ignore[assignment]
        parts = "  ".join(f"{d}:{diff.get(d, 0):3d}" for d in DIFFICULTIES)
        print(f"{category:<28} total {data['total']:3d}  {parts}")

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")


def write_summary(summary: dict[str, object], path: Path = Path("/tmp/bank_audit.json")) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(text)
    return text


def main(_argv: list[str] | None = None) -> int:
    summary = audit_questions(bank_questions())
    print_report(summary)
    write_summary(summary)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
