from __future__ import annotations

import pytest
import requests

from collaborators import (
    HttpCollaborators,
    parse_challenge,
    parse_resources,
    parse_result,
    parse_suggestions,
)
from errors import CollaboratorUnavailable


class _Response:
    def __init__(self, status_code: int, payload=None, bad_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("not json")
        return self._payload


class _Session:
    def __init__(self, response=None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: list[tuple[str, dict, float]] = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


def test_parse_challenge_repairs_optional_fields() -> None:
    challenge = parse_challenge({"title": " Loops ", "description": "Sum a list", "hints": ["a", "", None, "b"]})
    assert challenge.title == "Loops"
    assert challenge.starter_code == ""
    assert challenge.hints == ["a", "b"]


def test_parse_challenge_rejects_missing_description() -> None:
    with pytest.raises(CollaboratorUnavailable):
        parse_challenge({"title": "Loops"})
    with pytest.raises(CollaboratorUnavailable):
        parse_challenge("not an object")


def test_parse_result_clamps_stars() -> None:
    assert parse_result({"passed": True, "stars": 7}).stars == 3
    assert parse_result({"passed": True, "stars": 0}).stars == 1
    assert parse_result({"passed": "true", "stars": "2"}).stars == 2
    failed = parse_result({"passed": False, "stars": 3, "feedback": "off by one"})
    assert failed.passed is False
    assert failed.stars == 0
    assert failed.feedback == "off by one"


def test_parse_result_requires_verdict() -> None:
    with pytest.raises(CollaboratorUnavailable):
        parse_result({"feedback": "hmm"})


def test_parse_suggestions_normalizes_shapes() -> None:
    suggestions = parse_suggestions(
        {"suggestions": ["Docker", {"skill": "Redis"}, {"tool": "Terraform", "category": "Tools"}, {"name": ""}, 42]}
    )
    assert [(s.name, s.category) for s in suggestions] == [
        ("Docker", "Recommended"),
        ("Redis", "Recommended"),
        ("Terraform", "Tools"),
    ]
    assert parse_suggestions([{"name": "Go"}])[0].name == "Go"
    assert parse_suggestions("garbage") == []


def test_parse_resources_drops_entries_without_url() -> None:
    resources = parse_resources({"resources": [{"title": "Docs", "url": "https://x"}, {"title": "No link"}]})
    assert len(resources) == 1
    assert resources[0].url == "https://x"


def test_http_generate_posts_skill_level_and_difficulty() -> None:
    session = _Session(_Response(200, {"title": "T", "description": "D", "starterCode": "x = 1", "hints": ["h"]}))
    ai = HttpCollaborators(base_url="http://ai.local/", timeout=5, session=session)
    challenge = ai.generate("Docker", 3)
    assert challenge.starter_code == "x = 1"
    assert session.calls == [("http://ai.local/api/ai/generate-challenge", {"skill": "Docker", "level": 3, "difficulty": "Beginner"}, 5)]


def test_http_failures_become_collaborator_unavailable() -> None:
    ai = HttpCollaborators(base_url="http://ai.local", session=_Session(_Response(500, {})))
    with pytest.raises(CollaboratorUnavailable):
        ai.validate("D", "code", 0)

    ai = HttpCollaborators(base_url="http://ai.local", session=_Session(exc=requests.ConnectionError("down")))
    with pytest.raises(CollaboratorUnavailable):
        ai.suggest("Docker")

    ai = HttpCollaborators(base_url="http://ai.local", session=_Session(_Response(200, bad_json=True)))
    with pytest.raises(CollaboratorUnavailable):
        ai.analyze(["Docker"], "SRE")
