from __future__ import annotations

import importlib
import os
import sys
import time

import pytest
from fastapi.testclient import TestClient


_DEF_MODULES = [
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


def _assessment_payload(**overrides) -> dict:
    payload = {
        "title": "SQL basics",
        "description": "Joins and indexes",
        "type": "skill-based",
        "target_skills": ["SQL"],
        "questions": [
            {"question": "Which join keeps unmatched left rows?", "options": ["INNER", "LEFT", "CROSS", "SELF"],
             "correctAnswer": 1, "category": "SQL", "concept": "joins"},
            {"question": "What does an index speed up?", "options": ["Writes", "Reads", "Backups", "Nothing"],
             "correctAnswer": 1, "category": "Indexing", "concept": "indexes", "difficulty": "hard"},
        ],
        "time_limit": 10,
        "passing_score": 50,
    }
    payload.update(overrides)
    return payload


def _answer_all(client, app_module, aid: str, n_correct: int) -> None:
    for i, q in enumerate(app_module.ATTEMPTS[aid].questions):
        ans = q.correct if i < n_correct else (q.correct + 1) % 4
        resp = client.post(f"/attempts/{aid}/answer", json={"question_id": q.id, "answer": ans})
        assert resp.status_code == 200


def test_role_attempt_end_to_end(tmp_path):
    storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    start = client.post("/attempts/start", json={"job_roles": ["Backend Developer"], "user_id": "u1"})
    assert start.status_code == 200
    body = start.json()
    aid = body["attempt_id"]
    assert body["provider"] == "static"
    assert len(body["questions"]) == 15
    assert "correct" not in body["questions"][0]
    assert body["time_limit_sec"] == 2700

    active = client.get("/users/u1/attempts/active").json()["attempts"]
    assert [a["attemptId"] for a in active] == [aid]

    _answer_all(client, app_module, aid, n_correct=12)
    status = client.get(f"/attempts/{aid}").json()
    assert status["state"] == "in_progress"
    assert status["answered"] == 15

    result = client.post(f"/attempts/{aid}/submit")
    assert result.status_code == 200
    data = result.json()
    assert data["score"] == 80
    assert data["passed"] is True
    assert data["category_scores"][0]["competency_level"] == "Advanced"
    assert "answers" not in data and "questions" not in data

    again = client.post(f"/attempts/{aid}/submit")
    assert again.status_code == 409
    late = client.post(f"/attempts/{aid}/answer", json={"question_id": "q1", "answer": 0})
    assert late.status_code == 409

    history = client.get("/users/u1/history").json()
    assert len(history["history"]) == 1
    assert history["history"][0]["kind"] == "summary"
    assert history["stats"] == {"total_assessments": 1, "average_score": 80.0}
    assert client.get("/users/u1/attempts/active").json()["attempts"] == []

    by_attempt = client.get(f"/attempts/{aid}/result").json()
    assert by_attempt["result_id"] == data["result_id"]
    assert client.get(f"/attempts/{aid}").json()["result_id"] == data["result_id"]


def test_answer_validation(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    aid = client.post("/attempts/start", json={"job_roles": ["Product Manager"], "count": 5}).json()["attempt_id"]

    assert client.post(f"/attempts/{aid}/answer", json={"question_id": "zzz", "answer": 0}).status_code == 404
    assert client.post(f"/attempts/{aid}/answer", json={"question_id": "q1", "answer": "b"}).status_code == 400
    ok = client.post(f"/attempts/{aid}/answer", json={"question_id": "q1", "answer": "2"})
    assert ok.status_code == 200
    assert app_module.ATTEMPTS[aid].get_answer("q1") == 2
    assert client.post("/attempts/missing/answer", json={"question_id": "q1", "answer": 0}).status_code == 404


def test_start_requires_roles_or_skills(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    assert client.post("/attempts/start", json={}).status_code == 400
    assert client.post("/attempts/start", json={"job_roles": ["Chef"]}).status_code == 400


def test_persistence_failure_keeps_score_and_counts_once(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    created = client.post("/assessments", json=_assessment_payload())
    assert created.status_code == 201
    assessment_id = created.json()["id"]

    start = client.post("/attempts/start", json={"assessment_id": assessment_id, "user_id": "u2"})
    assert start.json()["time_limit_sec"] == 600
    aid = start.json()["attempt_id"]
    _answer_all(client, app_module, aid, n_correct=1)

    real_save = app_module.save_result
    calls = {"n": 0}

    def flaky_save(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OSError("disk full")
        return real_save(*args, **kwargs)

    monkeypatch.setattr(app_module, "save_result", flaky_save)

    failed = client.post(f"/attempts/{aid}/submit")
    assert failed.status_code == 503
    assert client.get(f"/attempts/{aid}").json()["state"] == "in_progress"
    frozen = client.post(f"/attempts/{aid}/answer", json={"question_id": "q2", "answer": 1})
    assert frozen.status_code == 409

    retried = client.post(f"/attempts/{aid}/submit")
    assert retried.status_code == 200
    data = retried.json()
    assert data["score"] == 50
    assert data["passed"] is True
    assert [g["skill"] for g in data["skill_gaps"]] == ["Indexing"]

    analytics = client.get(f"/assessments/{assessment_id}").json()["analytics"]
    assert analytics["total_attempts"] == 1
    assert analytics["skill_gaps_identified"] == {"Indexing": 1}
    assert len(client.get("/users/u2/history").json()["history"]) == 1


def test_courses_are_cached_until_forced(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    aid = client.post("/attempts/start", json={"job_roles": ["Data Scientist"], "count": 5}).json()["attempt_id"]
    result_id = client.post(f"/attempts/{aid}/submit").json()["result_id"]

    first = client.get(f"/results/{result_id}/courses").json()["learning_path"]
    course = first["courses"][0]
    assert course["title"] == "Personalized Learning Path"
    assert course["estimated_hours"] == 8
    assert course["level"] == "Beginner"
    assert first["gaps"][0]["link"] == "/courses?skill=Data%20Scientist"

    stored = client.get(f"/results/{result_id}").json()
    assert stored["learning_path"] == first
    assert client.get(f"/results/{result_id}/courses", params={"force": True}).json()["learning_path"] == first

    html = client.get(f"/results/{result_id}/html").json()["html"]
    assert "Data Scientist" in html
    assert client.get("/results/unknown").status_code == 404


def test_assessment_crud_and_listing(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    ids = []
    for i in range(3):
        resp = client.post("/assessments", json=_assessment_payload(title=f"SQL {i}", difficulty="hard" if i else "easy"))
        ids.append(resp.json()["id"])
    assert client.post("/assessments", json=_assessment_payload(questions=[])).status_code == 400

    page = client.get("/assessments", params={"limit": 2}).json()
    assert page["total"] == 3 and page["count"] == 2
    assert page["pagination"] == {"current_page": 1, "total_pages": 2, "has_next": True, "has_prev": False}
    assert "questions" not in page["data"][0]

    assert client.get("/assessments", params={"difficulty": "hard"}).json()["total"] == 2
    assert client.get("/assessments", params={"search": "sql 0"}).json()["total"] == 1
    assert client.get("/assessments", params={"skills": "SQL,Go"}).json()["total"] == 3

    updated = client.put(f"/assessments/{ids[0]}", json={"title": "Renamed"})
    assert updated.status_code == 200
    assert updated.json()["title"] == "Renamed"
    assert client.put(f"/assessments/{ids[0]}", json={"questions": []}).status_code == 400

    assert client.delete(f"/assessments/{ids[1]}").json() == {"ok": True}
    assert client.get("/assessments").json()["total"] == 2
    assert client.post("/attempts/start", json={"assessment_id": ids[1]}).status_code == 404
    assert client.get("/assessments/nope").status_code == 404


def test_ai_assessment_without_backend_falls_back(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    resp = client.post("/assessments", json=_assessment_payload(
        questions=[], is_ai_generated=True, ai_prompt="backend basics", target_job_roles=["Backend Developer"],
    ))
    assert resp.status_code == 201
    assert resp.json()["total_questions"] == 20


def test_adaptive_uses_history(tmp_path):
    storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    storage.append_history("u3", {"result_id": "r1", "score": 95}, lambda h: {})

    resp = client.post("/assessments/adaptive", json={
        "job_roles": ["Frontend Developer"], "user_id": "u3", "question_count": 3,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["recommended_difficulty"] == "hard"
    assert len(body["questions"]) == 3


@pytest.mark.parametrize("user_id", ["../../escaped", "..", "a/b", ".hidden"])
def test_user_ids_cannot_leave_the_data_dir(tmp_path, user_id):
    storage, app_module = _reload_app(tmp_path / "data")
    client = TestClient(app_module.app)

    resp = client.post("/attempts/start", json={"job_roles": ["Backend Developer"], "user_id": user_id})
    assert resp.status_code == 422
    adaptive = client.post("/assessments/adaptive", json={"job_roles": ["Backend Developer"], "user_id": user_id})
    assert adaptive.status_code == 422
    assert not list(tmp_path.glob("*.json"))
    with pytest.raises(ValueError):
        storage.load_user(user_id)


def test_expired_attempt_is_submitted_without_another_request(tmp_path):
    storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    start = client.post("/attempts/start", json={
        "job_roles": ["Backend Developer"], "count": 5, "time_limit_sec": 1, "user_id": "walker",
    })
    aid = start.json()["attempt_id"]

    deadline = time.monotonic() + 10
    while time.monotonic() < deadline and aid in app_module.ATTEMPTS:
        time.sleep(0.05)

    assert aid not in app_module.ATTEMPTS
    stored = storage.find_result_by_attempt(aid)
    assert stored["submit_reason"] == "timeout"
    assert stored["score"] == 0
    assert client.get("/users/walker/attempts/active").json()["attempts"] == []
    assert len(client.get("/users/walker/history").json()["history"]) == 1
    assert client.get(f"/attempts/{aid}").json()["state"] == "submitted"
    assert client.post(f"/attempts/{aid}/submit").status_code == 409


def test_submitted_attempts_leave_memory(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    ids = []
    for _ in range(5):
        aid = client.post("/attempts/start", json={"job_roles": ["DevOps Engineer"], "count": 3}).json()["attempt_id"]
        assert client.post(f"/attempts/{aid}/submit").status_code == 200
        ids.append(aid)

    assert not set(ids) & set(app_module.ATTEMPTS)
    assert not set(ids) & set(app_module.ATTEMPT_INFO)
    assert client.get("/health").json()["active_attempts"] == 0
    assert client.post(f"/attempts/{ids[0]}/submit").status_code == 409
    assert client.get("/attempts/never-started").status_code == 404


@pytest.mark.parametrize("bad", [{"points": "two"}, {"time_limit": "soon"}, {"difficulty": "brutal"}, {"options": "abcd"}])
def test_malformed_question_rows_are_rejected(tmp_path, bad):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    payload = _assessment_payload()
    payload["questions"][0].update(bad)

    assert client.post("/assessments", json=payload).status_code == 422
    created = client.post("/assessments", json=_assessment_payload()).json()
    updated = client.put(f"/assessments/{created['id']}", json={"questions": payload["questions"]})
    assert updated.status_code == 422


def test_numeric_strings_in_question_rows_are_accepted(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    payload = _assessment_payload()
    payload["questions"][0].update({"points": "3", "correctAnswer": "1"})

    created = client.post("/assessments", json=payload)
    assert created.status_code == 201
    first = created.json()["questions"][0]
    assert first["points"] == 3
    assert first["correct"] == 1


def test_catalogs_and_saved_selections(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    roles = client.get("/job-roles").json()["data"]
    assert "Backend Developer" in roles
    assert "Python" in client.get("/skills").json()["data"]

    skills = client.put("/users/sam/skills", json={"skills": ["Python", " python ", "Python", ""]})
    assert skills.json()["skills"] == ["Python", "python"]
    picked = client.put("/users/sam/job-roles", json={"jobRoles": ["Data Scientist", "Data Scientist"]})
    assert picked.status_code == 200
    assert picked.json()["job_roles"] == ["Data Scientist"]
    assert client.put("/users/sam/job-roles", json={"jobRoles": "Data Scientist"}).status_code == 422

    profile = client.get("/users/sam").json()
    assert profile["skills"] == ["Python", "python"]
    assert profile["job_roles"] == ["Data Scientist"]

    start = client.post("/attempts/start", json={"user_id": "sam", "count": 5})
    assert start.status_code == 200
    aid = start.json()["attempt_id"]
    assert {q.category for q in app_module.ATTEMPTS[aid].questions} == {"Data Scientist"}

    assert client.get("/users/.hidden/history").status_code == 422
