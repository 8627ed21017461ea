from __future__ import annotations
import json, os, re, time
from typing import Any, Dict, List

from .llm_client import client_settings, make_client
from .config import get_backend, load_config

_JSON_RX = re.compile(r"[\[{][\s\S]*[\]}]")

ROLE_FOCUS: Dict[str, str] = {
    "frontend developer": "React components, hooks, state management, JavaScript ES6+, CSS Grid/Flexbox, responsive design, TypeScript, event handling, virtual DOM",
    "backend developer": "Node.js, Express.js, RESTful APIs, database design, authentication/authorization, middleware, error handling, API security, data validation",
    "full stack developer": "full stack architecture, React + Node.js integration, database connections, API development, deployment strategies, version control",
    "data scientist": "Python data analysis, pandas/numpy, machine learning algorithms, statistical analysis, data visualization, model evaluation, feature engineering",
    "machine learning engineer": "deep learning, neural networks, TensorFlow/PyTorch, model deployment, MLOps, hyperparameter tuning, production ML systems",
    "devops engineer": "Docker containerization, Kubernetes orchestration, CI/CD pipelines, cloud platforms, infrastructure as code, monitoring and logging",
    "ui/ux designer": "user experience principles, design thinking, prototyping tools, user research methods, accessibility standards, design systems",
    "cybersecurity analyst": "network security, threat detection, penetration testing, security protocols, vulnerability assessment, incident response",
    "product manager": "product strategy, agile methodology, user stories, market analysis, stakeholder management, product roadmaps",
}
_DEFAULT_FOCUS = "general programming concepts, problem-solving, software engineering principles, algorithms and data structures"


def backend_in_use() -> str:
    return get_backend(load_config()) or "none"


def build_prompt(job_roles: List[str], skills: List[str], difficulty: str, count: int, context: str = "") -> str:
    focus = ", ".join(ROLE_FOCUS.get(r.lower(), _DEFAULT_FOCUS) for r in job_roles) or _DEFAULT_FOCUS
    targets = " and ".join(job_roles) or ", ".join(skills) or "software engineering"
    mix = "a mix of easy, medium and hard" if difficulty == "adaptive" else f"{difficulty} difficulty"
    return (
        f"Generate exactly {count} technical assessment questions for a candidate targeting: {targets}.\n"
        f"Cover these key areas: {focus}.\n"
        + (f"Skills to assess: {', '.join(skills)}.\n" if skills else "")
        + (f"Context: {context}\n" if context else "")
        + f"Questions should be {mix}. Each question must have exactly 4 options and one correct answer.\n"
        'Return ONLY valid JSON: {"questions": [{"question": "...", "options": ["A","B","C","D"], '
        '"correctAnswer": 1, "difficulty": "medium", "category": "...", "concept": "...", '
        '"explanation": "...", "points": 1}]}'
    )


def extract_questions(text: str) -> List[Dict[str, Any]]:
    m = _JSON_RX.search(text or "")
    if not m:
        raise ValueError("no JSON found in model response")
    data = json.loads(m.group(0))
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        raise ValueError("model response has no question list")
    return [q for q in data if isinstance(q, dict)]


def _complete(prompt: str) -> str:
    backend = backend_in_use()
    messages = [
        {"role": "system", "content": "You write multiple-choice assessment questions. Output JSON only."},
        {"role": "user", "content": prompt},
    ]
    if backend == "none":
        raise RuntimeError("no LLM backend configured")
    s = client_settings(backend)
    resp = make_client(s).chat.completions.create(
        model=s.model, messages=messages, temperature=0.7, max_tokens=4000,
    )
    return resp.choices[0].message.content or ""


def generate_questions(job_roles: List[str], skills: List[str], difficulty: str, count: int, context: str = "") -> List[Dict[str, Any]]:
    """Ask the configured model for raw question dicts; raises on any failure."""
    t0 = time.time()
    prompt = build_prompt(job_roles, skills, difficulty, count, context)
    raw = ""
    error = None
    try:
        raw = _complete(prompt)
        return extract_questions(raw)
    except Exception as e:
        error = str(e)
        raise
    finally:
        _log_call(prompt, raw, error, t0)


def _log_call(prompt: str, raw: str, error: str | None, t0: float) -> None:
    log = {
        "ts": round(time.time(), 3),
        "backend": backend_in_use(),
        "prompt": prompt[:800],
        "raw": (raw or "")[:2000],
        "error": error,
        "rt_ms": int((time.time() - t0) * 1000),
    }
    path = os.getenv("LLM_LOG_PATH", "llm_questions_log.jsonl")
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(log, ensure_ascii=False) + "\n")
    except OSError:
        pass
