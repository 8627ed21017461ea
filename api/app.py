from __future__ import annotations
from fastapi import FastAPI, HTTPException, Body, Path as PathParam, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, math, os, uuid, typing as t

from assess_core.adaptive import recommend_difficulty
from assess_core.analytics import apply_to_assessment, apply_to_user, blank_assessment_analytics
from assess_core.attempt import Attempt, AttemptState
from assess_core.audit_export import answer_events, to_csv as audit_to_csv, to_json as audit_to_json
from assess_core.config import AUDIT_EXPORT_ENABLED, PASSING_SCORE
from assess_core.errors import AlreadySubmitted, AttemptClosed, PersistenceError, ProviderUnavailable
from assess_core.providers import GenerationRequest, default_chain
from assess_core.question_bank import ROLES, SKILLS
from assess_core.recommend import learning_path
from assess_core.report_html import render_report_html
from assess_core.types import AssessmentResult, Question, SkillGap
from .storage import (
    USER_ID_PATTERN,
    active_attempts_for_user,
    append_history,
    clear_active_attempt,
    find_result_by_attempt,
    list_assessments,
    load_assessment,
    load_result,
    load_user,
    record_active_attempt,
    save_assessment,
    save_result,
    save_selection,
    update_active_attempt,
    utcnow_iso,
)

log = logging.getLogger(__name__)

ATTEMPTS: dict[str, Attempt] = {}
ATTEMPT_INFO: dict[str, dict[str, t.Any]] = {}

app = FastAPI(title="Skill Gap Assessment API")


@app.get("/")
def root():
    return {"status": "ok", "service": "skill-gap-assessment-api"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
AssessmentType = t.Literal["skill-based", "role-based", "adaptive", "custom"]
AssessmentDifficulty = t.Literal["easy", "medium", "hard", "adaptive"]
QuestionDifficulty = t.Literal["easy", "medium", "hard"]
UserId = t.Annotated[str, Field(pattern=USER_ID_PATTERN)]
RecordId = t.Annotated[str, Field(pattern=r"^[A-Za-z0-9_-]{1,64}$")]


class QuestionIn(BaseModel):
    id: str | None = None
    question: str | None = None
    text: str | None = None
    options: list[str] = []
    correctAnswer: int | None = None
    correct: int | None = None
    category: str | None = None
    concept: str | None = None
    difficulty: QuestionDifficulty = "medium"
    points: int = Field(1, ge=1)
    explanation: str | None = None
    tags: list[str] = []
    time_limit: int | None = Field(None, ge=1)
    timeLimit: int | None = Field(None, ge=1)


class CreateAssessmentReq(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    type: AssessmentType = "skill-based"
    target_skills: list[str] = []
    target_job_roles: list[str] = []
    questions: list[QuestionIn] = []
    time_limit: int = Field(45, ge=5, le=180)        # minutes
    passing_score: int = Field(PASSING_SCORE, ge=0, le=100)
    difficulty: AssessmentDifficulty = "medium"
    is_ai_generated: bool = False
    ai_prompt: str | None = None
    created_by: UserId | None = None
    tags: list[str] = []


class UpdateAssessmentReq(BaseModel):
    title: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=500)
    type: AssessmentType | None = None
    target_skills: list[str] | None = None
    target_job_roles: list[str] | None = None
    questions: list[QuestionIn] | None = None
    time_limit: int | None = Field(None, ge=5, le=180)
    passing_score: int | None = Field(None, ge=0, le=100)
    difficulty: AssessmentDifficulty | None = None
    is_active: bool | None = None
    tags: list[str] | None = None


class AdaptiveReq(BaseModel):
    skills: list[str] = []
    job_roles: list[str] = []
    current_difficulty: AssessmentDifficulty = "medium"
    question_count: int = Field(5, ge=1, le=50)
    user_id: UserId | None = None


class StartReq(BaseModel):
    assessment_id: RecordId | None = None
    job_roles: list[str] = []
    skills: list[str] = []
    difficulty: AssessmentDifficulty = "medium"
    count: int | None = Field(None, ge=1, le=100)
    time_limit_sec: int | None = Field(None, ge=1)
    user_id: UserId | None = None


class SkillsReq(BaseModel):
    skills: list[str]


class JobRolesReq(BaseModel):
    job_roles: list[str] = Field(..., alias="jobRoles")

    model_config = {"populate_by_name": True}


class AnswerReq(BaseModel):
    question_id: str
    answer: int | str


# ---- Helpers ----
def _questions_from_payload(rows: list[dict[str, t.Any]]) -> list[Question]:
    out = []
    for idx, row in enumerate(rows):
        row = dict(row)
        if row.get("id") in (None, ""):
            row["id"] = f"q{idx + 1}"
        out.append(Question.from_dict(row))
    return out


def _rows(questions: list[QuestionIn]) -> list[dict[str, t.Any]]:
    return [q.model_dump(exclude_none=True) for q in questions]


def _public_questions(questions: list[Question]) -> list[dict[str, t.Any]]:
    return [q.to_dict(include_key=False) for q in questions]


def _get_attempt(attempt_id: str) -> Attempt:
    attempt = ATTEMPTS.get(attempt_id)
    if attempt is not None:
        return attempt
    if find_result_by_attempt(attempt_id):
        raise HTTPException(409, "attempt already submitted")
    raise HTTPException(404, "attempt not found")


def _get_result(result_id: str) -> dict[str, t.Any]:
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    return result


def _persist_for(attempt: Attempt):
    info = ATTEMPT_INFO.setdefault(attempt.id, {})
    # stable across retries so history and analytics are keyed once
    result_id = info.setdefault("result_id", str(uuid.uuid4()))

    def _persist(result: AssessmentResult) -> None:
        user_id = info.get("user_id")
        assessment_id = info.get("assessment_id")
        payload = result.to_dict()
        payload.update({
            "id": result_id,
            "result_id": result_id,
            "attempt_id": attempt.id,
            "assessment_id": assessment_id,
            "user_id": user_id,
            "submit_reason": attempt.submit_reason,
            "questions": [q.to_dict() for q in attempt.questions],
            "answers": attempt.recorder.snapshot(),
        })

        if assessment_id:
            assessment = load_assessment(assessment_id)
            if assessment is not None:
                counted = assessment.setdefault("counted_results", [])
                if result_id not in counted:
                    assessment["analytics"] = apply_to_assessment(assessment.get("analytics"), result)
                    counted.append(result_id)
                    save_assessment(assessment)
        if user_id:
            summary = result.summary(result_id=result_id, assessment_id=assessment_id)
            append_history(user_id, summary.to_dict(), apply_to_user)

        save_result(result_id, payload, {
            "attemptId": attempt.id,
            "assessmentId": assessment_id,
            "userId": user_id,
            "createdAt": result.completed_at,
            "score": result.score,
        })

    return result_id, _persist


def _finish(attempt: Attempt) -> None:
    """Drop a submitted attempt from memory; its stored result answers from now on."""
    info = ATTEMPT_INFO.pop(attempt.id, {})
    ATTEMPTS.pop(attempt.id, None)
    if info.get("user_id"):
        clear_active_attempt(attempt.id)


def _on_timeout(attempt: Attempt):
    def _done(_result: AssessmentResult | None) -> None:
        if attempt.state is AttemptState.SUBMITTED:
            log.info("attempt %s submitted on timeout", attempt.id)
            _finish(attempt)
        else:
            # persisting failed; the next request touching the attempt retries
            log.warning("attempt %s timed out but its result is not stored yet", attempt.id)

    return _done


def _submit(attempt: Attempt, reason: str) -> dict[str, t.Any]:
    result_id, persist = _persist_for(attempt)
    try:
        attempt.submit(persist, reason=reason)
    except AlreadySubmitted:
        raise HTTPException(409, "attempt already submitted")
    except AttemptClosed as e:
        raise HTTPException(409, str(e))
    except PersistenceError:
        raise HTTPException(503, "saving the result failed; the score is kept, retry the submission")
    _finish(attempt)
    return _get_result(result_id)


def _expire(attempt: Attempt) -> dict[str, t.Any] | None:
    """Submit an attempt whose countdown ran out; returns the stored result."""
    if attempt.state is not AttemptState.IN_PROGRESS or not attempt.expired():
        return None
    return _submit(attempt, "timeout")


def _strip_private(result: dict[str, t.Any]) -> dict[str, t.Any]:
    return {k: v for k, v in result.items() if k not in ("questions", "answers")}


def _split(raw: str | None) -> list[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


# ---- Health ----
@app.get("/health")
def health():
    return {
        "llm_backend": os.getenv("LLM_BACKEND", "none"),
        "azure_config_present": all(os.getenv(k) for k in [
            "AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_API_KEY", "AZURE_OPENAI_API_VERSION", "AZURE_OPENAI_DEPLOYMENT"
        ]),
        "openai_key_present": bool(os.getenv("OPENAI_API_KEY")),
        "active_attempts": len(ATTEMPTS),
    }


# ---- Assessments ----
@app.get("/assessments")
def get_assessments(
    type: str | None = None,
    skills: str | None = None,
    job_roles: str | None = None,
    difficulty: str | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    rows = [a for a in list_assessments() if a.get("is_active", True)]
    if type:
        rows = [a for a in rows if a.get("type") == type]
    if difficulty and difficulty != "adaptive":
        rows = [a for a in rows if a.get("difficulty") == difficulty]
    if skills:
        want = set(_split(skills))
        rows = [a for a in rows if want & set(a.get("target_skills") or [])]
    if job_roles:
        want = set(_split(job_roles))
        rows = [a for a in rows if want & set(a.get("target_job_roles") or [])]
    if search:
        needle = search.lower()
        rows = [a for a in rows if needle in (a.get("title") or "").lower() or needle in (a.get("description") or "").lower()]

    total = len(rows)
    total_pages = math.ceil(total / limit)
    start = (page - 1) * limit
    data = [{k: v for k, v in a.items() if k not in ("questions", "counted_results")} for a in rows[start:start + limit]]
    return {
        "count": len(data),
        "total": total,
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
        "data": data,
    }


@app.get("/assessments/{assessment_id}")
def get_assessment(assessment_id: str):
    assessment = load_assessment(assessment_id)
    if not assessment:
        raise HTTPException(404, "assessment not found")
    return assessment


@app.post("/assessments", status_code=201)
def create_assessment(req: CreateAssessmentReq):
    questions = _questions_from_payload(_rows(req.questions))
    if req.is_ai_generated and req.ai_prompt:
        gen = GenerationRequest(
            job_roles=req.target_job_roles,
            skills=req.target_skills,
            difficulty=req.difficulty,
            count=20,
            prompt=req.ai_prompt,
        )
        try:
            questions = default_chain().generate(gen)
        except ProviderUnavailable as e:
            log.warning("AI question generation failed: %s", e)
            raise HTTPException(400, "Failed to generate AI questions")
    if not questions:
        raise HTTPException(400, "an assessment needs at least one question")

    now = utcnow_iso()
    assessment = req.model_dump(exclude={"questions"})
    assessment.update({
        "id": str(uuid.uuid4()),
        "questions": [q.to_dict() for q in questions],
        "total_questions": len(questions),
        "is_active": True,
        "analytics": blank_assessment_analytics(),
        "counted_results": [],
        "created_at": now,
        "updated_at": now,
    })
    save_assessment(assessment)
    return assessment


@app.put("/assessments/{assessment_id}")
def update_assessment(assessment_id: str, req: UpdateAssessmentReq):
    assessment = load_assessment(assessment_id)
    if not assessment:
        raise HTTPException(404, "assessment not found")
    changes = req.model_dump(exclude_unset=True, exclude={"questions"})
    if req.questions is not None:
        questions = _questions_from_payload(_rows(req.questions))
        if not questions:
            raise HTTPException(400, "an assessment needs at least one question")
        assessment["questions"] = [q.to_dict() for q in questions]
        assessment["total_questions"] = len(questions)
    assessment.update(changes)
    assessment["updated_at"] = utcnow_iso()
    save_assessment(assessment)
    return assessment


@app.delete("/assessments/{assessment_id}")
def delete_assessment(assessment_id: str):
    assessment = load_assessment(assessment_id)
    if not assessment:
        raise HTTPException(404, "assessment not found")
    assessment["is_active"] = False
    assessment["updated_at"] = utcnow_iso()
    save_assessment(assessment)
    return {"ok": True}


@app.post("/assessments/adaptive")
def adaptive_questions(req: AdaptiveReq):
    recent: list[float] = []
    if req.user_id:
        recent = [float(h.get("score", 0)) for h in load_user(req.user_id).get("history", [])]
    difficulty = recommend_difficulty(recent, req.current_difficulty)
    gen = GenerationRequest(
        job_roles=req.job_roles,
        skills=req.skills,
        difficulty=difficulty,
        count=req.question_count,
    )
    try:
        questions = default_chain().generate(gen)
    except ProviderUnavailable as e:
        raise HTTPException(400, str(e))
    return {"questions": _public_questions(questions), "recommended_difficulty": difficulty}


# ---- Attempts ----
@app.post("/attempts/start")
def start_attempt(req: StartReq):
    time_limit = req.time_limit_sec
    passing_score = None
    provider = "stored"
    if req.assessment_id:
        assessment = load_assessment(req.assessment_id)
        if not assessment or not assessment.get("is_active", True):
            raise HTTPException(404, "assessment not found")
        questions = _questions_from_payload(assessment.get("questions") or [])
        if time_limit is None:
            time_limit = int(assessment.get("time_limit", 45)) * 60
        passing_score = assessment.get("passing_score")
    else:
        job_roles, skills = req.job_roles, req.skills
        if not job_roles and not skills and req.user_id:
            saved = load_user(req.user_id)
            job_roles, skills = saved.get("job_roles") or [], saved.get("skills") or []
        if not job_roles and not skills:
            raise HTTPException(400, "No job roles or skills selected")
        chain = default_chain()
        gen = GenerationRequest(job_roles=job_roles, skills=skills, difficulty=req.difficulty)
        if req.count:
            gen.count = req.count
        try:
            questions = chain.generate(gen)
        except ProviderUnavailable as e:
            raise HTTPException(400, str(e))
        provider = chain.last_provider or "unknown"
    if not questions:
        raise HTTPException(400, "no questions available")

    attempt = Attempt(questions, time_limit_sec=time_limit, passing_score=passing_score)
    attempt.start()
    started_at = utcnow_iso()
    ATTEMPT_INFO[attempt.id] = {
        "user_id": req.user_id,
        "assessment_id": req.assessment_id,
        "started_at": started_at,
    }
    ATTEMPTS[attempt.id] = attempt
    if req.user_id:
        record_active_attempt(attempt.id, {
            "attemptId": attempt.id,
            "userId": req.user_id,
            "assessmentId": req.assessment_id,
            "startedAt": started_at,
            "lastUpdated": started_at,
            "answered": 0,
        })
    _, persist = _persist_for(attempt)
    attempt.arm_timer(_on_timeout(attempt), persist)
    return {
        "attempt_id": attempt.id,
        "questions": _public_questions(attempt.questions),
        "time_limit_sec": attempt.time_limit_sec,
        "remaining": attempt.remaining(),
        "provider": provider,
    }


@app.get("/attempts/{attempt_id}")
def attempt_status(attempt_id: str):
    attempt = ATTEMPTS.get(attempt_id)
    if attempt is not None:
        _expire(attempt)
        if attempt.state is not AttemptState.SUBMITTED:
            return {
                "attempt_id": attempt.id,
                "state": attempt.state.value,
                "remaining": attempt.remaining(),
                "answered": attempt.recorder.answered_count(),
                "total": len(attempt.questions),
                "result_id": None,
            }
    stored = find_result_by_attempt(attempt_id)
    if not stored:
        raise HTTPException(404, "attempt not found")
    return {
        "attempt_id": attempt_id,
        "state": AttemptState.SUBMITTED.value,
        "remaining": 0,
        "answered": len(stored.get("answers") or {}),
        "total": len(stored.get("questions") or []),
        "result_id": stored.get("result_id"),
    }


@app.post("/attempts/{attempt_id}/answer")
def answer(attempt_id: str, req: AnswerReq = Body(...)):
    attempt = _get_attempt(attempt_id)
    if _expire(attempt) is not None:
        raise HTTPException(409, "time is up; the attempt was submitted")
    if not any(q.id == req.question_id for q in attempt.questions):
        raise HTTPException(404, "question not in this attempt")
    try:
        val = int(req.answer)
    except (TypeError, ValueError):
        raise HTTPException(400, "answer must be an option index")
    try:
        attempt.set_answer(req.question_id, val)
    except AttemptClosed as e:
        raise HTTPException(409, str(e))
    if ATTEMPT_INFO.get(attempt_id, {}).get("user_id"):
        update_active_attempt(attempt_id, {
            "lastUpdated": utcnow_iso(),
            "answered": attempt.recorder.answered_count(),
        })
    return {"ok": True, "answered": attempt.recorder.answered_count(), "remaining": attempt.remaining()}


@app.post("/attempts/{attempt_id}/submit")
def submit(attempt_id: str):
    attempt = _get_attempt(attempt_id)
    expired = _expire(attempt)
    if expired is not None:
        return _strip_private(expired)
    return _strip_private(_submit(attempt, "manual"))


# ---- Results ----
@app.get("/results/{result_id}")
def get_result(result_id: str):
    return _strip_private(_get_result(result_id))


@app.get("/attempts/{attempt_id}/result")
def get_attempt_result(attempt_id: str):
    stored = find_result_by_attempt(attempt_id)
    if not stored:
        raise HTTPException(404, "result not found")
    return _strip_private(stored)


@app.get("/results/{result_id}/courses")
def get_courses(result_id: str, force: bool = Query(False, description="Regenerate even if cached")):
    result = _get_result(result_id)
    existing = result.get("learning_path")
    if existing and not force:
        return {"result_id": result_id, "learning_path": existing}

    gaps = [SkillGap(**g) for g in result.get("skill_gaps") or []]
    path = learning_path(gaps)
    result["learning_path"] = path
    save_result(result_id, result, {
        "attemptId": result.get("attempt_id"),
        "assessmentId": result.get("assessment_id"),
        "userId": result.get("user_id"),
        "createdAt": result.get("completed_at"),
        "score": result.get("score"),
    })
    return {"result_id": result_id, "learning_path": path}


def _result_events(result_id: str) -> list[dict[str, t.Any]]:
    if not AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")
    result = _get_result(result_id)
    questions = _questions_from_payload(result.get("questions") or [])
    return answer_events(questions, result.get("answers") or {})


@app.get("/results/{result_id}/audit.json")
def get_audit_json(result_id: str):
    return {"result_id": result_id, **audit_to_json(_result_events(result_id))}


@app.get("/results/{result_id}/audit.csv")
def get_audit_csv(result_id: str):
    body = audit_to_csv(_result_events(result_id))
    filename = f"{result_id}_answers.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


@app.get("/results/{result_id}/html")
def get_result_html(result_id: str):
    return {"html": render_report_html(_get_result(result_id))}


# ---- Catalogs ----
@app.get("/job-roles")
def job_roles_catalog():
    return {"data": list(ROLES)}


@app.get("/skills")
def skills_catalog():
    return {"data": list(SKILLS)}


# ---- Users ----
UserPath = t.Annotated[str, PathParam(pattern=USER_ID_PATTERN)]


@app.get("/users/{user_id}")
def user_profile(user_id: UserPath):
    user = load_user(user_id)
    return {
        "user_id": user_id,
        "skills": user.get("skills", []),
        "job_roles": user.get("job_roles", []),
        "stats": user.get("stats") or apply_to_user([]),
    }


@app.put("/users/{user_id}/skills")
def update_user_skills(user_id: UserPath, req: SkillsReq):
    user = save_selection(user_id, "skills", req.skills)
    return {"user_id": user_id, "skills": user["skills"]}


@app.put("/users/{user_id}/job-roles")
def update_user_job_roles(user_id: UserPath, req: JobRolesReq):
    user = save_selection(user_id, "job_roles", req.job_roles)
    return {"user_id": user_id, "job_roles": user["job_roles"]}


@app.get("/users/{user_id}/history")
def user_history(user_id: UserPath):
    user = load_user(user_id)
    return {"history": user.get("history", []), "stats": user.get("stats") or apply_to_user([])}


@app.get("/users/{user_id}/attempts/active")
def list_active_attempts(user_id: UserPath):
    return {"attempts": active_attempts_for_user(user_id)}
