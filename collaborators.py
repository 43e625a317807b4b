"""
Boundary to the AI content service.

The engine only sees the four narrow contracts below. Raw payloads coming back
from the service are language-model JSON, so every one goes through a parse_*
function that validates it into a schema and repairs what can be repaired.
Anything unusable becomes ``CollaboratorUnavailable``.
"""
import logging
import os
from typing import Any, List, Optional, Protocol, Sequence

import requests
from pydantic import ValidationError

from errors import CollaboratorUnavailable
from progression import difficulty
from schemas import MAX_STARS, Challenge, Resource, Result, SkillSuggestion

logger = logging.getLogger(__name__)

COLLABORATOR_URL = os.getenv("COLLABORATOR_URL", "http://localhost:5000")
COLLABORATOR_TIMEOUT = float(os.getenv("COLLABORATOR_TIMEOUT", "30"))


class ChallengeGenerator(Protocol):
    def generate(self, skill_name: str, level: int) -> Challenge: ...


class ChallengeGrader(Protocol):
    def validate(self, description: str, submitted_code: str, attempt_count: int) -> Result: ...


class ResourceRecommender(Protocol):
    def suggest(self, skill_name: str) -> List[Resource]: ...


class RoleGapAnalyzer(Protocol):
    def analyze(self, current_skill_names: Sequence[str], target_role: str) -> List[SkillSuggestion]: ...


def _field(payload: Any, key: str) -> list:
    value = payload.get(key) if isinstance(payload, dict) else None
    return value if isinstance(value, list) else []


def parse_challenge(payload: Any) -> Challenge:
    if not isinstance(payload, dict):
        raise CollaboratorUnavailable("Challenge generator returned no challenge")
    raw_hints = payload.get("hints") or []
    if isinstance(raw_hints, str):
        raw_hints = [raw_hints]
    hints = [str(h).strip() for h in raw_hints if h is not None and str(h).strip()]
    try:
        return Challenge(
            title=str(payload.get("title") or "").strip(),
            description=str(payload.get("description") or "").strip(),
            starter_code=str(payload.get("starterCode") or payload.get("starter_code") or ""),
            hints=hints,
        )
    except ValidationError as exc:
        raise CollaboratorUnavailable(f"Malformed challenge: {exc.errors()[0]['loc']}") from exc


def parse_result(payload: Any) -> Result:
    if not isinstance(payload, dict) or "passed" not in payload:
        raise CollaboratorUnavailable("Grader returned no verdict")
    passed = payload.get("passed")
    if isinstance(passed, str):
        passed = passed.strip().lower() in ("true", "yes", "1")
    passed = bool(passed)
    try:
        stars = int(payload.get("stars") or 0)
    except (TypeError, ValueError):
        stars = 0
    stars = min(max(stars, 0), MAX_STARS)
    if passed:
        stars = max(stars, 1)
    else:
        stars = 0
    return Result(passed=passed, stars=stars, feedback=str(payload.get("feedback") or ""))


def parse_suggestions(payload: Any) -> List[SkillSuggestion]:
    raw = payload if isinstance(payload, list) else _field(payload, "suggestions")
    suggestions = []
    for entry in raw:
        if isinstance(entry, str):
            name, category = entry, "Recommended"
        elif isinstance(entry, dict):
            name = entry.get("name") or entry.get("skill") or entry.get("tool") or ""
            category = entry.get("category") or "Recommended"
        else:
            continue
        name = str(name).strip()
        if name:
            suggestions.append(SkillSuggestion(name=name, category=str(category)))
    return suggestions


def parse_resources(payload: Any) -> List[Resource]:
    raw = payload if isinstance(payload, list) else _field(payload, "resources")
    resources = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("url"):
            continue
        url = str(entry["url"]).strip()
        resources.append(Resource(title=str(entry.get("title") or url).strip(), url=url))
    return resources


class HttpCollaborators:
    """All four collaborators backed by the AI content service over HTTP."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, session=None):
        self.base_url = (base_url or COLLABORATOR_URL).rstrip("/")
        self.timeout = timeout or COLLABORATOR_TIMEOUT
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("collaborator %s unreachable: %s", path, e)
            raise CollaboratorUnavailable(f"{path} unreachable") from e
        if r.status_code < 200 or r.status_code >= 300:
            logger.warning("collaborator %s answered %s", path, r.status_code)
            raise CollaboratorUnavailable(f"{path} failed with status {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise CollaboratorUnavailable(f"{path} returned invalid JSON") from e

    def generate(self, skill_name: str, level: int) -> Challenge:
        payload = {"skill": skill_name, "level": level, "difficulty": difficulty(level)}
        return parse_challenge(self._post("/api/ai/generate-challenge", payload))

    def validate(self, description: str, submitted_code: str, attempt_count: int) -> Result:
        payload = {"question": description, "userAnswer": submitted_code, "attemptCount": attempt_count}
        return parse_result(self._post("/api/ai/validate-challenge", payload))

    def suggest(self, skill_name: str) -> List[Resource]:
        return parse_resources(self._post("/api/ai/recommend-resources", {"skill": skill_name}))

    def analyze(self, current_skill_names: Sequence[str], target_role: str) -> List[SkillSuggestion]:
        payload = {"currentSkills": list(current_skill_names), "targetRole": target_role}
        return parse_suggestions(self._post("/api/ai/skill-gap", payload))
