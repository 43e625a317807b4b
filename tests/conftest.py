from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import mongomock
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from collaborators import parse_challenge, parse_resources, parse_result, parse_suggestions  # noqa: E402
from engine import SkillEngine  # noqa: E402
from errors import CollaboratorUnavailable  # noqa: E402

START = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Controllable stand-in for utcnow."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeAI:
    """Scripted generator, grader, recommender and role analyzer."""

    def __init__(self) -> None:
        self.challenge = {
            "title": "Containerize it",
            "description": "Write a Dockerfile for a Flask app.",
            "starterCode": "FROM ",
            "hints": ["Start from python:3.12-slim", "Expose port 5000"],
        }
        self.verdicts: list[dict] = []
        self.resources = {"resources": [{"title": "Docs", "url": "https://docs.docker.com"}]}
        self.suggestions = {"suggestions": [{"name": "Kubernetes", "category": "Tools"}, "GraphQL"]}
        self.fail_generate = False
        self.fail_validate = False
        self.generate_calls: list[tuple[str, int]] = []
        self.validate_calls: list[tuple[str, str, int]] = []

    def generate(self, skill_name, level):
        self.generate_calls.append((skill_name, level))
        if self.fail_generate:
            raise CollaboratorUnavailable("generator down")
        return parse_challenge(self.challenge)

    def validate(self, description, submitted_code, attempt_count):
        self.validate_calls.append((description, submitted_code, attempt_count))
        if self.fail_validate:
            raise CollaboratorUnavailable("grader down")
        verdict = self.verdicts.pop(0) if self.verdicts else {"passed": True, "stars": 2, "feedback": "ok"}
        return parse_result(verdict)

    def suggest(self, skill_name):
        return parse_resources(self.resources)

    def analyze(self, current_skill_names, target_role):
        return parse_suggestions(self.suggestions)


@pytest.fixture()
def mongo_db():
    return mongomock.MongoClient()["skill_tracker_test"]


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def ai() -> FakeAI:
    return FakeAI()


@pytest.fixture()
def engine(mongo_db, ai, clock) -> SkillEngine:
    return SkillEngine(mongo_db, generator=ai, grader=ai, recommender=ai, analyzer=ai, clock=clock)
