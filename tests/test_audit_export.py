from __future__ import annotations

import importlib
import os
import sys

from fastapi.testclient import TestClient


_DEF_MODULES = [
    "assess_core.config",
    "api.storage",
    "api.app",
]


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["api.storage"]
    app_module = sys.modules["api.app"]
    return storage, app_module


def _finished_attempt(client, app_module) -> str:
    start = client.post("/attempts/start", json={"job_roles": ["Backend Developer"], "count": 5})
    assert start.status_code == 200
    aid = start.json()["attempt_id"]
    first = app_module.ATTEMPTS[aid].questions[0]
    resp = client.post(f"/attempts/{aid}/answer", json={"question_id": first.id, "answer": first.correct})
    assert resp.status_code == 200
    finish = client.post(f"/attempts/{aid}/submit")
    assert finish.status_code == 200
    return finish.json()["result_id"]


def test_audit_exports_available(tmp_path):
    _storage, app_module = _reload_app(tmp_path / "enabled")
    client = TestClient(app_module.app)
    result_id = _finished_attempt(client, app_module)

    json_resp = client.get(f"/results/{result_id}/audit.json")
    assert json_resp.status_code == 200
    events = json_resp.json()["events"]
    assert len(events) == 5
    required = {"question_id", "category", "concept", "difficulty", "chosen", "correct", "is_correct", "points"}
    assert required.issubset(events[0].keys())
    assert events[0]["is_correct"] is True
    assert [e["chosen"] for e in events[1:]] == [-1] * 4

    csv_resp = client.get(f"/results/{result_id}/audit.csv")
    assert csv_resp.status_code == 200
    assert csv_resp.headers["content-type"].startswith("text/csv")
    csv_lines = [line for line in csv_resp.text.strip().splitlines() if line]
    assert len(csv_lines) == len(events) + 1
    header = csv_lines[0].split(",")
    assert header[0] == "question_id"
    assert header[-1] == "points"


def test_audit_exports_disabled(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path / "disabled")
    client = TestClient(app_module.app)
    result_id = _finished_attempt(client, app_module)

    monkeypatch.setattr(app_module, "AUDIT_EXPORT_ENABLED", False)
    assert client.get(f"/results/{result_id}/audit.json").status_code == 404
    assert client.get(f"/results/{result_id}/audit.csv").status_code == 404


def test_audit_export_unknown_result(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    assert client.get("/results/nope/audit.json").status_code == 404
