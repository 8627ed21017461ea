from __future__ import annotations
from typing import Dict, Optional


class AnswerRecorder:
    """Selected option index per question id for a single attempt."""

    def __init__(self) -> None:
        self._answers: Dict[str, int] = {}

    def set_answer(self, question_id: str, answer_index: int) -> None:
        self._answers[str(question_id)] = int(answer_index)

    def get_answer(self, question_id: str) -> Optional[int]:
        return self._answers.get(str(question_id))

    def answered_count(self) -> int:
        return len(self._answers)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._answers)

    def reset(self) -> None:
        self._answers.clear()
