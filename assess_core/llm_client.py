"""Client construction for the question generator backends.

``azure`` reads ``AZURE_OPENAI_*`` from the environment, falling back to
``.azure_config.json`` for keys the environment leaves empty. ``openai``
needs ``OPENAI_API_KEY`` and takes the model from ``OPENAI_MODEL``.
"""
from __future__ import annotations
import json, os, pathlib
from dataclasses import dataclass
from typing import Dict, Optional

from openai import AzureOpenAI, OpenAI

# settings field -> (env var, key in .azure_config.json)
_AZURE_SOURCES: Dict[str, tuple[str, str]] = {
    "endpoint": ("AZURE_OPENAI_ENDPOINT", "endpoint"),
    "api_key": ("AZURE_OPENAI_API_KEY", "api_key"),
    "api_version": ("AZURE_OPENAI_API_VERSION", "api_version"),
    "model": ("AZURE_OPENAI_DEPLOYMENT", "deployment"),
}
AZURE_CONFIG_FILE = ".azure_config.json"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ClientSettings:
    backend: str
    model: str
    api_key: str
    endpoint: Optional[str] = None
    api_version: Optional[str] = None


def _azure_file(path: str = AZURE_CONFIG_FILE) -> Dict[str, str]:
    p = pathlib.Path(path)
    if not p.exists():
        return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except ValueError:
        return {}
    return raw if isinstance(raw, dict) else {}


def _azure_settings() -> ClientSettings:
    values = {field: os.getenv(env, "") for field, (env, _) in _AZURE_SOURCES.items()}
    if not all(values.values()):
        stored = _azure_file()
        for field, (_, key) in _AZURE_SOURCES.items():
            values[field] = values[field] or str(stored.get(key) or "")
    missing = [_AZURE_SOURCES[f][0] for f, v in values.items() if not v]
    if missing:
        raise RuntimeError(f"Azure OpenAI not configured. Missing: {', '.join(missing)}")
    return ClientSettings(backend="azure", **values)


def client_settings(backend: str) -> ClientSettings:
    if backend == "azure":
        return _azure_settings()
    if backend == "openai":
        key = os.getenv("OPENAI_API_KEY", "")
        if not key:
            raise RuntimeError("OpenAI not configured. Missing: OPENAI_API_KEY")
        return ClientSettings(backend="openai", model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL), api_key=key)
    raise RuntimeError(f"unknown LLM backend {backend!r}")


def make_client(s: ClientSettings) -> AzureOpenAI | OpenAI:
    if s.backend == "azure":
        return AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)
    return OpenAI(api_key=s.api_key)
