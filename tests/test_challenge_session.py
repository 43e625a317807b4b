from __future__ import annotations

import warnings
from pathlib import Path

import pytest

import challenge
from challenge import MAX_CHEAT_WARNINGS, TERMINATED_FEEDBACK, ChallengeSession, SessionState
from errors import InvalidSessionState, NoHintsRemaining, SessionClosed
from schemas import Challenge, Result


def _ready_session(hints: list[str] | None = None) -> ChallengeSession:
    session = ChallengeSession(user_id="u1", skill_id="s1", skill_name="Docker", level=5)
    session.begin_loading()
    session.load(Challenge(title="T", description="D", starter_code="print()", hints=hints or ["h1", "h2"]))
    return session


def test_loading_seeds_buffer_with_starter_code() -> None:
    session = _ready_session()
    assert session.state is SessionState.READY
    assert session.buffer == "print()"


def test_cannot_submit_before_ready() -> None:
    session = ChallengeSession(user_id="u1", skill_id="s1", skill_name="Docker", level=1)
    with pytest.raises(InvalidSessionState):
        session.begin_submit("x")


def test_hints_revealed_in_order_until_exhausted() -> None:
    session = _ready_session(["first", "second"])
    assert session.reveal_hint() == "first"
    assert session.reveal_hint() == "second"
    assert session.revealed_hint_count == 2
    with pytest.raises(NoHintsRemaining):
        session.check_hint_available()


def test_withdrawn_hint_can_be_revealed_again() -> None:
    session = _ready_session(["first", "second"])
    session.reveal_hint()
    session.withdraw_hint()
    assert session.revealed_hint_count == 0
    assert session.view()["challenge"]["hints"] == []
    assert session.reveal_hint() == "first"


def test_failed_attempt_returns_to_ready_and_counts() -> None:
    session = _ready_session()
    session.begin_submit("bad")
    session.record_result(Result(passed=False, feedback="nope"))
    assert session.state is SessionState.READY
    assert session.attempt_count == 1
    assert session.buffer == "bad"


def test_pass_closes_session() -> None:
    session = _ready_session()
    session.begin_submit("good")
    session.record_result(Result(passed=True, stars=3))
    assert session.state is SessionState.PASSED
    with pytest.raises(SessionClosed):
        session.begin_submit("good")
    assert session.attempt_count == 0


def test_grader_outage_returns_to_ready_without_counting() -> None:
    session = _ready_session()
    session.begin_submit("code")
    session.abort_submit()
    assert session.state is SessionState.READY
    assert session.attempt_count == 0


def test_third_tab_hidden_event_terminates() -> None:
    session = _ready_session()
    results = [session.register_tab_hidden() for _ in range(MAX_CHEAT_WARNINGS)]
    assert results == [False, False, True]
    assert session.state is SessionState.FAILED
    assert session.last_result == Result(passed=False, stars=0, feedback=TERMINATED_FEEDBACK)
    assert session.attempt_count == 0
    # further events after the end are ignored
    assert session.register_tab_hidden() is False
    assert session.cheat_warning_count == MAX_CHEAT_WARNINGS


def test_tab_hidden_while_submitting_counts() -> None:
    session = _ready_session()
    session.register_tab_hidden()
    session.register_tab_hidden()
    session.begin_submit("code")
    assert session.register_tab_hidden() is True
    with pytest.raises(SessionClosed):
        session.record_result(Result(passed=True, stars=3))


def test_tab_hidden_before_ready_is_ignored() -> None:
    session = ChallengeSession(user_id="u1", skill_id="s1", skill_name="Docker", level=1)
    assert session.register_tab_hidden() is False
    assert session.cheat_warning_count == 0


def test_view_hides_unrevealed_hints() -> None:
    session = _ready_session(["a", "b", "c"])
    session.reveal_hint()
    view = session.view()
    assert view["challenge"]["hints"] == ["a"]
    assert view["challenge"]["hint_count"] == 3
    assert view["boss"] is True
    assert view["difficulty"] == "BOSS: Basic"
    assert view["state"] == "ready"


def test_module_source_compiles_without_warnings() -> None:
    path = Path(challenge.__file__)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(path.read_text(encoding="utf-8"), str(path), "exec")
