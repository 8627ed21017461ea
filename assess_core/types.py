from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Literal, Optional

Difficulty = Literal["easy", "medium", "hard"]
CompetencyLevel = Literal["Beginner", "Intermediate", "Advanced", "Expert"]
DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard")


@dataclass(frozen=True)
class Question:
    id: str; text: str; options: List[str]
    correct: Optional[int]
    category: str
    concept: str
    difficulty: Difficulty = "medium"
    points: int = 1
    explanation: str = ""
    tags: List[str] = field(default_factory=list)
    time_limit: int = 60

    def to_dict(self, *, include_key: bool = True) -> Dict[str, Any]:
        d = asdict(self)
        if not include_key:
            d.pop("correct", None)
            d.pop("explanation", None)
        return d

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "Question":
        return Question(
            id=str(raw.get("id")),
            text=str(raw.get("text") or raw.get("question") or ""),
            options=list(raw.get("options") or []),
            correct=raw.get("correct", raw.get("correctAnswer")),
            category=str(raw.get("category") or "General"),
            concept=str(raw.get("concept") or "general"),
            difficulty=raw.get("difficulty") or "medium",
            points=int(raw.get("points") or 1),
            explanation=str(raw.get("explanation") or ""),
            tags=list(raw.get("tags") or []),
            time_limit=int(raw.get("time_limit") or raw.get("timeLimit") or 60),
        )


@dataclass
class CategoryScore:
    category: str
    correct: int
    total: int
    score: int = 0
    competency_level: CompetencyLevel = "Beginner"


@dataclass
class SkillGap:
    skill: str; score: int
    topics: List[str] = field(default_factory=list)


@dataclass
class Strength:
    category: str; score: int


@dataclass
class DifficultyStat:
    difficulty: str
    correct: int = 0
    total: int = 0
    topics: List[str] = field(default_factory=list)


@dataclass
class AssessmentResult:
    total_questions: int
    correct_answers: int
    score: int
    time_spent: int
    category_scores: List[CategoryScore]
    skill_gaps: List[SkillGap]
    strengths: List[Strength] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    difficulty_stats: List[DifficultyStat] = field(default_factory=list)
    earned_points: int = 0
    max_points: int = 0
    passing_score: int = 70
    passed: bool = False
    invalid_questions: List[str] = field(default_factory=list)
    completed_at: str = ""
    kind: Literal["detailed"] = "detailed"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self, *, result_id: str, assessment_id: Optional[str] = None) -> "ResultSummary":
        return ResultSummary(
            result_id=result_id,
            assessment_id=assessment_id,
            completed_at=self.completed_at,
            score=self.score,
            category_scores=[CategoryScore(**asdict(c)) for c in self.category_scores],
            skill_gaps=[g.skill for g in self.skill_gaps],
        )


@dataclass
class ResultSummary:
    result_id: str
    assessment_id: Optional[str]
    completed_at: str
    score: int
    category_scores: List[CategoryScore]
    skill_gaps: List[str]
    kind: Literal["summary"] = "summary"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
