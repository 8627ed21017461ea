from __future__ import annotations

from assess_core.recorder import AnswerRecorder


def test_overwrite_snapshot_and_reset():
    rec = AnswerRecorder()
    assert rec.get_answer("q1") is None
    rec.set_answer("q1", 2)
    rec.set_answer("q1", 3)
    rec.set_answer("q2", 9)  # option count is not checked here
    assert rec.get_answer("q1") == 3
    assert rec.answered_count() == 2

    snap = rec.snapshot()
    snap["q1"] = 0
    assert rec.get_answer("q1") == 3

    rec.reset()
    assert rec.answered_count() == 0
