from __future__ import annotations

import json

import pytest

from assess_core import llm_bridge


def test_extract_questions_object_and_array():
    wrapped = 'Sure! {"questions": [{"question": "x", "options": ["a","b","c","d"], "correctAnswer": 0}]} thanks'
    assert llm_bridge.extract_questions(wrapped)[0]["question"] == "x"

    bare = '```json\n[{"question": "y"}, "junk"]\n```'
    assert llm_bridge.extract_questions(bare) == [{"question": "y"}]


@pytest.mark.parametrize("text", ["no json here", '{"items": []}'])
def test_extract_questions_rejects_bad_payloads(text):
    with pytest.raises(ValueError):
        llm_bridge.extract_questions(text)


def test_prompt_mentions_role_focus_and_count():
    prompt = llm_bridge.build_prompt(["DevOps Engineer"], [], "hard", 7)
    assert "exactly 7" in prompt
    assert "Kubernetes" in prompt
    assert "hard difficulty" in prompt


def test_backend_in_use(monkeypatch):
    assert llm_bridge.backend_in_use() == "none"
    monkeypatch.setenv("LLM_BACKEND", "Azure")
    assert llm_bridge.backend_in_use() == "azure"
    monkeypatch.setenv("LLM_BACKEND", "gemini")
    assert llm_bridge.backend_in_use() == "none"


def test_generate_questions_logs_each_call(monkeypatch, tmp_path):
    log_path = tmp_path / "calls.jsonl"
    monkeypatch.setenv("LLM_LOG_PATH", str(log_path))
    monkeypatch.setattr(llm_bridge, "_complete", lambda prompt: '[{"question": "q"}]')
    assert llm_bridge.generate_questions(["Data Scientist"], [], "easy", 1) == [{"question": "q"}]

    def _boom(prompt):
        raise RuntimeError("quota")

    monkeypatch.setattr(llm_bridge, "_complete", _boom)
    with pytest.raises(RuntimeError):
        llm_bridge.generate_questions(["Data Scientist"], [], "easy", 1)

    lines = [json.loads(x) for x in log_path.read_text(encoding="utf-8").splitlines()]
    assert len(lines) == 2
    assert lines[0]["error"] is None and lines[1]["error"] == "quota"
