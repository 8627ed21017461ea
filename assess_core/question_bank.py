from __future__ import annotations
import json, importlib.resources as ir
from functools import lru_cache
from typing import Dict, List, Optional

ROLES = [
    "Frontend Developer", "Backend Developer", "Full Stack Developer",
    "Data Scientist", "Machine Learning Engineer", "DevOps Engineer",
    "UI/UX Designer", "Cybersecurity Analyst", "Product Manager",
]

SKILLS = [
    "JavaScript", "React", "Node.js", "Python", "Java", "C++",
    "Data Science", "Machine Learning", "DevOps", "Cloud Computing",
    "UI/UX Design", "Product Management", "Digital Marketing",
]

# substring rules applied in order when no role name matches exactly
_FUZZY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("frontend",), "Frontend Developer"),
    (("backend",), "Backend Developer"),
    (("full stack",), "Full Stack Developer"),
    (("machine learning",), "Machine Learning Engineer"),
    (("devops",), "DevOps Engineer"),
    (("data",), "Data Scientist"),
    (("ui", "ux"), "UI/UX Designer"),
)


@lru_cache(maxsize=1)
def _raw() -> dict:
    data = ir.files(__package__).joinpath("data/role_bank.json").read_text(encoding="utf-8")
    return json.loads(data)


def load_role_bank() -> Dict[str, List[dict]]:
    roles = _raw().get("roles", {})
    return {role: [dict(q, category=role) for q in qs] for role, qs in roles.items()}


def load_general_bank() -> List[dict]:
    return [dict(q) for q in _raw().get("general", [])]


def match_role(role: str) -> Optional[str]:
    bank = load_role_bank()
    low = (role or "").strip().lower()
    if not low:
        return None
    for key in bank:
        if key.lower() == low:
            return key
    for needles, target in _FUZZY_RULES:
        if all(n in low for n in needles):
            return target
    if "cyber" in low or "security" in low:
        return "Cybersecurity Analyst"
    if "product" in low:
        return "Product Manager"
    return None
