from __future__ import annotations
import os, json, pathlib, random


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


GAP_THRESHOLD: int = 70
PASSING_SCORE: int = 70

# (lower bound inclusive, label), checked top-down; below the last band is Beginner
COMPETENCY_BANDS: tuple[tuple[int, str], ...] = (
    (90, "Expert"),
    (75, "Advanced"),
    (60, "Intermediate"),
)
COMPETENCY_FLOOR: str = "Beginner"

OPTIONS_PER_QUESTION: int = 4
QUESTION_COUNT: int = 15
DEFAULT_TIME_LIMIT_SEC: int = 45 * 60
DEFAULT_POINTS: int = 1

ADAPTIVE_WINDOW: int = 3
ADAPTIVE_PROMOTE_AT: float = 80.0
ADAPTIVE_DEMOTE_AT: float = 50.0

HOURS_PER_GAP: int = 8

BANK_MIN_PER_ROLE: int = 5

AUDIT_EXPORT_ENABLED: bool = True

# // env overrides for staging/ops; defaults match the published thresholds.
GAP_THRESHOLD = _env_int("GAP_THRESHOLD", GAP_THRESHOLD)
PASSING_SCORE = _env_int("PASSING_SCORE", PASSING_SCORE)
QUESTION_COUNT = _env_int("QUESTION_COUNT", QUESTION_COUNT)
DEFAULT_TIME_LIMIT_SEC = _env_int("TIME_LIMIT_SEC", DEFAULT_TIME_LIMIT_SEC)
ADAPTIVE_PROMOTE_AT = _env_float("ADAPTIVE_PROMOTE_AT", ADAPTIVE_PROMOTE_AT)
ADAPTIVE_DEMOTE_AT = _env_float("ADAPTIVE_DEMOTE_AT", ADAPTIVE_DEMOTE_AT)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except ValueError: cfg = {}
    e = os.environ
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    if e.get("OPENAI_MODEL"): cfg["OPENAI_MODEL"] = e.get("OPENAI_MODEL")
    if e.get("LLM_LOG_PATH"): cfg["LLM_LOG_PATH"] = e.get("LLM_LOG_PATH")
    if e.get("SEED"): cfg["SEED"] = int(e.get("SEED"))
    return cfg


def get_backend(cfg: dict) -> str | None:
    b = (cfg.get("LLM_BACKEND") or "").lower().strip()
    return b if b in ("azure", "openai") else None


def seed_rng(cfg: dict, rng: random.Random | None = None) -> random.Random:
    rng = rng or random.Random()
    s = cfg.get("SEED")
    if s is not None:
        rng.seed(int(s))
    return rng
