"""Question providers: LLM generation first, static role banks as fallback.

Providers are tried in order by :class:`ProviderChain`; the first one that
returns a non-empty question list wins.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from . import config, llm_bridge
from .config import load_config, seed_rng
from .errors import ProviderUnavailable
from .question_bank import load_general_bank, load_role_bank, match_role
from .types import DIFFICULTIES, Question

log = logging.getLogger(__name__)

_PADDING_SUFFIX = " (Additional question)"
_DEFAULT_CONCEPT = "Role-specific Knowledge"
_POINTS_BY_DIFFICULTY = {"easy": 1, "medium": 2, "hard": 3}


@dataclass
class GenerationRequest:
    job_roles: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    difficulty: str = "medium"
    count: int = config.QUESTION_COUNT
    prompt: str = ""


class QuestionProvider(Protocol):
    name: str

    def generate(self, request: GenerationRequest) -> List[Question]: ...


def _positional_difficulty(idx: int, count: int) -> str:
    third = max(1, count // 3)
    if idx < third: return "easy"
    if idx < 2 * third: return "medium"
    return "hard"


def _pad(questions: List[Question], count: int) -> List[Question]:
    """Repeat questions, marked as additional, until ``count`` is reached."""
    if not questions:
        return []
    out = list(questions[:count])
    base = list(out)
    i = 0
    while len(out) < count:
        src = base[i % len(base)]
        out.append(Question(
            id=f"q{len(out) + 1}",
            text=f"{src.text}{_PADDING_SUFFIX}",
            options=list(src.options),
            correct=src.correct,
            category=src.category,
            concept=src.concept,
            difficulty=src.difficulty,
            points=src.points,
            explanation=src.explanation,
            tags=list(src.tags),
            time_limit=src.time_limit,
        ))
        i += 1
    return out


def normalize_generated(raw: Iterable[Dict[str, Any]], request: GenerationRequest) -> List[Question]:
    fallback_category = (request.job_roles or request.skills or ["General"])[0]
    out: List[Question] = []
    for q in raw:
        options = q.get("options")
        if not isinstance(options, list) or len(options) < config.OPTIONS_PER_QUESTION:
            log.warning("dropping generated question with bad options: %r", q.get("question"))
            continue
        correct = q.get("correctAnswer", q.get("correct"))
        if isinstance(correct, bool) or not isinstance(correct, int):
            correct = 0
        if not 0 <= correct < config.OPTIONS_PER_QUESTION:
            correct = 0
        difficulty = q.get("difficulty")
        if difficulty not in DIFFICULTIES:
            difficulty = request.difficulty if request.difficulty in DIFFICULTIES else "medium"
        try:
            points = max(1, int(q.get("points") or 1))
        except (TypeError, ValueError):
            points = 1
        out.append(Question(
            id=f"q{len(out) + 1}",
            text=str(q.get("question") or q.get("text") or f"Question {len(out) + 1}"),
            options=[str(o) for o in options[: config.OPTIONS_PER_QUESTION]],
            correct=correct,
            category=str(q.get("category") or fallback_category),
            concept=str(q.get("concept") or _DEFAULT_CONCEPT),
            difficulty=difficulty,
            points=points,
            explanation=str(q.get("explanation") or ""),
            tags=[str(t) for t in q.get("tags") or []],
        ))
    return _pad(out, request.count)


class RemoteGenerator:
    name = "remote"

    def generate(self, request: GenerationRequest) -> List[Question]:
        if llm_bridge.backend_in_use() == "none":
            raise ProviderUnavailable("no LLM backend configured")
        raw = llm_bridge.generate_questions(
            request.job_roles, request.skills, request.difficulty, request.count, request.prompt,
        )
        return normalize_generated(raw, request)


class StaticFallback:
    name = "static"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or seed_rng(load_config())

    def _role_questions(self, roles: Sequence[str]) -> List[dict]:
        bank = load_role_bank()
        picked: List[dict] = []
        for role in roles:
            key = match_role(role)
            if key:
                picked.extend(bank[key])
        return picked

    def generate(self, request: GenerationRequest) -> List[Question]:
        picked = self._role_questions(request.job_roles)
        if picked:
            self.rng.shuffle(picked)
            n = min(request.count, len(picked))
            questions = [
                Question(
                    id=f"q{i + 1}",
                    text=r["text"],
                    options=list(r["options"]),
                    correct=r["correct"],
                    category=r["category"],
                    concept=r["concept"],
                    difficulty=_positional_difficulty(i, request.count),
                )
                for i, r in enumerate(picked[:n])
            ]
            return _pad(questions, request.count)

        if not request.skills:
            return []
        # generic bank scored by difficulty, first question tagged with the requested skill
        difficulty = request.difficulty if request.difficulty in DIFFICULTIES else "medium"
        general = load_general_bank()[: request.count]
        out = []
        for i, r in enumerate(general):
            category = request.skills[0] if i == 0 else r["category"]
            out.append(Question(
                id=f"q{i + 1}",
                text=r["text"],
                options=list(r["options"]),
                correct=r["correct"],
                category=category,
                concept=r["concept"],
                difficulty=difficulty,
                points=_POINTS_BY_DIFFICULTY[difficulty],
                explanation=r.get("explanation", ""),
                tags=list(r.get("tags") or []),
                time_limit=int(r.get("time_limit") or 60),
            ))
        return out


class ProviderChain:
    def __init__(self, providers: Sequence[QuestionProvider]):
        self.providers = list(providers)
        self.last_provider: Optional[str] = None

    def generate(self, request: GenerationRequest) -> List[Question]:
        for provider in self.providers:
            try:
                questions = provider.generate(request)
            except Exception as exc:
                log.warning("question provider %s failed: %s", provider.name, exc)
                continue
            if questions:
                self.last_provider = provider.name
                log.info("question provider %s produced %d questions", provider.name, len(questions))
                return questions
            log.info("question provider %s returned nothing", provider.name)
        raise ProviderUnavailable(
            f"no provider produced questions for roles={request.job_roles} skills={request.skills}"
        )


def default_chain() -> ProviderChain:
    return ProviderChain([RemoteGenerator(), StaticFallback()])
