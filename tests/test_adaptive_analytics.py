from __future__ import annotations

from assess_core.adaptive import recommend_difficulty
from assess_core.analytics import apply_to_assessment, apply_to_user
from assess_core.engine import evaluate

from tests.conftest import make_question


def test_recommend_difficulty_steps_and_clamps():
    assert recommend_difficulty([], "hard") == "hard"
    assert recommend_difficulty([90, 85], "medium") == "hard"
    assert recommend_difficulty([95], "hard") == "hard"
    assert recommend_difficulty([30, 40], "medium") == "easy"
    assert recommend_difficulty([10], "easy") == "easy"
    assert recommend_difficulty([60, 70], "easy") == "easy"
    assert recommend_difficulty([10, 10, 90, 90, 90], "medium") == "hard"
    assert recommend_difficulty([100], "adaptive") == "hard"


def test_assessment_analytics_running_means_and_gap_counts():
    qs = [make_question("a", category="SQL"), make_question("b", category="Go")]
    r1 = evaluate(qs, {"a": 1}, time_spent=100)
    r2 = evaluate(qs, {"a": 1, "b": 1}, time_spent=200)

    a1 = apply_to_assessment(None, r1)
    a2 = apply_to_assessment(a1, r2)
    assert a2["total_attempts"] == 2
    assert a2["average_score"] == 75.0
    assert a2["average_time_spent"] == 150.0
    assert a2["skill_gaps_identified"] == {"Go": 1}
    assert a1["total_attempts"] == 1


def test_user_stats_from_history():
    assert apply_to_user([]) == {"total_assessments": 0, "average_score": 0.0}
    stats = apply_to_user([{"score": 50}, {"score": 75}])
    assert stats == {"total_assessments": 2, "average_score": 62.5}
