"""Utility helpers for persisting assessments, results and user history.

The production deployment should ideally swap this module for a proper
database-backed implementation.  For now we use simple JSON files stored on
disk so results survive restarts and history can be listed per user.
"""

from __future__ import annotations

import json
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
ASSESSMENTS_DIR = DATA_ROOT / "assessments"
RESULTS_DIR = DATA_ROOT / "results"
USERS_DIR = DATA_ROOT / "users"
RESULT_INDEX_PATH = DATA_ROOT / "results_index.json"
ACTIVE_ATTEMPTS_PATH = DATA_ROOT / "attempts_active.json"

_LOCK = threading.RLock()


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---- assessments ----
def save_assessment(assessment: Dict[str, Any]) -> None:
    with _LOCK:
        _write_json(ASSESSMENTS_DIR / f"{assessment['id']}.json", assessment)


def load_assessment(assessment_id: str) -> Optional[Dict[str, Any]]:
    return _read_json(ASSESSMENTS_DIR / f"{assessment_id}.json", None)


def list_assessments() -> List[Dict[str, Any]]:
    if not ASSESSMENTS_DIR.exists():
        return []
    out = [_read_json(p, None) for p in ASSESSMENTS_DIR.glob("*.json")]
    out = [a for a in out if isinstance(a, dict)]
    out.sort(key=lambda a: a.get("created_at", ""), reverse=True)
    return out


# ---- results ----
def save_result(result_id: str, result: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist the result JSON and its index metadata."""

    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        index[result_id] = metadata
        _write_json(RESULT_INDEX_PATH, index)
    _write_json(RESULTS_DIR / f"{result_id}.json", result)


def load_result(result_id: str) -> Optional[Dict[str, Any]]:
    return _read_json(RESULTS_DIR / f"{result_id}.json", None)


def find_result_by_attempt(attempt_id: str) -> Optional[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
    for rid, meta in index.items():
        if meta.get("attemptId") == attempt_id:
            result = load_result(rid)
            if result:
                return result
    return None


# ---- users ----
USER_ID_PATTERN = r"^[A-Za-z0-9_-][A-Za-z0-9_.-]{0,63}$"
_USER_ID_RX = re.compile(USER_ID_PATTERN)


def _user_path(user_id: str) -> Path:
    if not _USER_ID_RX.match(user_id or ""):
        raise ValueError(f"invalid user id {user_id!r}")
    path = (USERS_DIR / f"{user_id}.json").resolve()
    if path.parent != USERS_DIR:
        raise ValueError(f"invalid user id {user_id!r}")
    return path


def load_user(user_id: str) -> Dict[str, Any]:
    return _read_json(_user_path(user_id), {"history": [], "stats": {}, "skills": [], "job_roles": []})


def append_history(user_id: str, entry: Dict[str, Any], stats_fn) -> Dict[str, Any]:
    """Append a history entry once per ``result_id`` and refresh the stats."""

    with _LOCK:
        user = load_user(user_id)
        history: List[Dict[str, Any]] = user.setdefault("history", [])
        if not any(h.get("result_id") == entry.get("result_id") for h in history):
            history.append(entry)
        user["stats"] = stats_fn(history)
        _write_json(_user_path(user_id), user)
    return user


def save_selection(user_id: str, key: str, values: List[str]) -> Dict[str, Any]:
    """Store the user's chosen ``skills`` or ``job_roles``, deduplicated in order."""

    picked: List[str] = []
    for v in values:
        v = v.strip()
        if v and v not in picked:
            picked.append(v)
    with _LOCK:
        user = load_user(user_id)
        user[key] = picked
        _write_json(_user_path(user_id), user)
    return user


# ---- active attempts ----
def _load_attempts() -> Dict[str, Dict[str, Any]]:
    return _read_json(ACTIVE_ATTEMPTS_PATH, {})


def record_active_attempt(attempt_id: str, payload: Dict[str, Any]) -> None:
    if not payload.get("userId"):
        return
    with _LOCK:
        attempts = _load_attempts()
        attempts[attempt_id] = payload
        _write_json(ACTIVE_ATTEMPTS_PATH, attempts)


def update_active_attempt(attempt_id: str, updates: Dict[str, Any]) -> None:
    with _LOCK:
        attempts = _load_attempts()
        if attempt_id not in attempts:
            return
        attempts[attempt_id].update(updates)
        _write_json(ACTIVE_ATTEMPTS_PATH, attempts)


def clear_active_attempt(attempt_id: str) -> None:
    with _LOCK:
        attempts = _load_attempts()
        if attempt_id in attempts:
            attempts.pop(attempt_id, None)
            _write_json(ACTIVE_ATTEMPTS_PATH, attempts)


def active_attempts_for_user(user_id: str) -> List[Dict[str, Any]]:
    out = [p for p in _load_attempts().values() if p.get("userId") == user_id]
    out.sort(key=lambda r: r.get("startedAt", ""), reverse=True)
    return out
