from __future__ import annotations

import pytest

from assess_core.types import Question


def make_question(
    qid: str,
    *,
    category: str = "JavaScript Fundamentals",
    concept: str | None = None,
    correct: int | None = 1,
    difficulty: str = "medium",
    options: list[str] | None = None,
    points: int = 1,
) -> Question:
    return Question(
        id=qid,
        text=f"{category} question {qid}",
        options=options if options is not None else ["A", "B", "C", "D"],
        correct=correct,
        category=category,
        concept=concept or f"{category} concept {qid}",
        difficulty=difficulty,  # type: ignore[arg-type]
        points=points,
    )


def build_synthetic_questions(
    *,
    categories: list[str] | None = None,
    per_category: int = 3,
) -> list[Question]:
    """Create a deterministic question set; every answer key is index 1."""

    out: list[Question] = []
    cats = categories or ["JavaScript Fundamentals", "React", "Databases"]
    levels = ("easy", "medium", "hard")
    for cat in cats:
        for idx in range(per_category):
            out.append(
                make_question(
                    f"{cat[:3].lower()}_{idx}",
                    category=cat,
                    concept=f"{cat} topic {idx}",
                    difficulty=levels[idx % 3],
                )
            )
    return out


@pytest.fixture
def synthetic_questions() -> list[Question]:
    return build_synthetic_questions()


@pytest.fixture(autouse=True)
def _no_llm(monkeypatch, tmp_path):
    monkeypatch.delenv("LLM_BACKEND", raising=False)
    monkeypatch.setenv("LLM_LOG_PATH", str(tmp_path / "llm_log.jsonl"))
