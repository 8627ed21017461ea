"""Lifecycle of one timed attempt.

not_started -> in_progress -> submitting -> submitted

``submit`` and timer expiry race for the same lock; whichever gets there
first computes the result, the other sees ``AlreadySubmitted``.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Callable, List, Optional, Sequence

from . import config
from .engine import evaluate
from .errors import AlreadySubmitted, AttemptClosed, PersistenceError
from .recorder import AnswerRecorder
from .types import AssessmentResult, Question

log = logging.getLogger(__name__)

Persist = Callable[[AssessmentResult], None]


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class Attempt:
    def __init__(
        self,
        questions: Sequence[Question],
        *,
        time_limit_sec: Optional[int] = None,
        passing_score: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        attempt_id: Optional[str] = None,
    ):
        self.id = attempt_id or str(uuid.uuid4())
        self.questions: List[Question] = list(questions)
        self.time_limit_sec = int(time_limit_sec if time_limit_sec is not None else config.DEFAULT_TIME_LIMIT_SEC)
        self.passing_score = passing_score
        self.state = AttemptState.NOT_STARTED
        self.recorder = AnswerRecorder()
        self.submit_reason: Optional[str] = None
        self._clock = clock
        self._started_at: Optional[float] = None
        self._result: Optional[AssessmentResult] = None
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    # ---- countdown ----
    def start(self) -> None:
        with self._lock:
            if self.state is not AttemptState.NOT_STARTED:
                raise AttemptClosed(f"attempt {self.id} already {self.state.value}")
            self.recorder.reset()
            self._started_at = self._clock()
            self.state = AttemptState.IN_PROGRESS

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    def remaining(self) -> int:
        if self._started_at is None:
            return self.time_limit_sec
        return max(0, int(round(self.time_limit_sec - self.elapsed())))

    def expired(self) -> bool:
        return self._started_at is not None and self.elapsed() >= self.time_limit_sec

    def time_spent(self) -> int:
        return int(round(min(self.elapsed(), float(self.time_limit_sec))))

    @property
    def result(self) -> Optional[AssessmentResult]:
        return self._result

    # ---- answers ----
    def set_answer(self, question_id: str, answer_index: int) -> None:
        with self._lock:
            if self.state is not AttemptState.IN_PROGRESS or self._result is not None:
                raise AttemptClosed(f"attempt {self.id} is {self.state.value}; answers are frozen")
            self.recorder.set_answer(question_id, answer_index)

    def get_answer(self, question_id: str) -> Optional[int]:
        return self.recorder.get_answer(question_id)

    # ---- submission ----
    def submit(self, persist: Optional[Persist] = None, *, reason: str = "manual") -> AssessmentResult:
        with self._lock:
            if self.state in (AttemptState.SUBMITTING, AttemptState.SUBMITTED):
                raise AlreadySubmitted(f"attempt {self.id} already {self.state.value}")
            if self.state is AttemptState.NOT_STARTED:
                raise AttemptClosed(f"attempt {self.id} was never started")
            if self._result is None:
                self._result = evaluate(
                    self.questions,
                    self.recorder.snapshot(),
                    time_spent=self.time_spent(),
                    passing_score=self.passing_score,
                )
            self.state = AttemptState.SUBMITTING
            self.submit_reason = reason
            result = self._result

        try:
            if persist is not None:
                persist(result)
        except Exception as exc:
            with self._lock:
                self.state = AttemptState.IN_PROGRESS
            log.warning("persisting attempt %s failed, result kept for retry: %s", self.id, exc)
            raise PersistenceError(str(exc)) from exc

        with self._lock:
            self.state = AttemptState.SUBMITTED
        self.cancel_timer()
        log.info("attempt %s submitted (%s) score=%s", self.id, reason, result.score)
        return result

    def expire_if_due(self, persist: Optional[Persist] = None) -> Optional[AssessmentResult]:
        if self.state is not AttemptState.IN_PROGRESS or not self.expired():
            return None
        try:
            return self.submit(persist, reason="timeout")
        except AlreadySubmitted:
            return None

    def arm_timer(self, on_expire: Callable[[Optional[AssessmentResult]], None], persist: Optional[Persist] = None) -> None:
        """Submit automatically when the countdown runs out."""

        def _fire() -> None:
            result: Optional[AssessmentResult] = None
            try:
                result = self.submit(persist, reason="timeout")
            except AlreadySubmitted:
                return
            except PersistenceError:
                result = self._result
            on_expire(result)

        self.cancel_timer()
        delay = max(0.0, self.time_limit_sec - self.elapsed())
        self._timer = threading.Timer(delay, _fire)
        self._timer.daemon = True
        self._timer.start()

    def cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
