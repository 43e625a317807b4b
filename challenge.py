r"""
Challenge session state machine.

    IDLE -> LOADING -> READY -> (hint)* -> SUBMITTING -> PASSED | READY (on fail)
                                         \-> FAILED (anti-cheat termination)

Sessions are transient and never written to the store. This module only
tracks session state; the engine supplies collaborators and applies rewards.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from errors import InvalidSessionState, NoHintsRemaining, SessionClosed
from progression import difficulty, is_boss_level
from schemas import Challenge, Result, new_id, utcnow

HINT_COST = 200
MAX_CHEAT_WARNINGS = 3
TERMINATED_FEEDBACK = "Session terminated: too many tab switches detected."


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    PASSED = "passed"
    FAILED = "failed"


CLOSED_STATES = (SessionState.PASSED, SessionState.FAILED)
WATCHED_STATES = (SessionState.READY, SessionState.SUBMITTING)


@dataclass
class ChallengeSession:
    user_id: str
    skill_id: str
    skill_name: str
    level: int
    id: str = field(default_factory=new_id)
    state: SessionState = SessionState.IDLE
    challenge: Optional[Challenge] = None
    buffer: str = ""
    attempt_count: int = 0
    cheat_warning_count: int = 0
    revealed_hint_count: int = 0
    last_result: Optional[Result] = None
    reward: int = 0
    reward_paid: bool = False
    started_at: datetime = field(default_factory=utcnow)
    hint_lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def closed(self) -> bool:
        return self.state in CLOSED_STATES

    def _require(self, *states: SessionState) -> None:
        if self.state in states:
            return
        if self.closed:
            raise SessionClosed(f"Session {self.id} already ended ({self.state.value})")
        raise InvalidSessionState(f"Session {self.id} is {self.state.value}")

    def begin_loading(self) -> None:
        self._require(SessionState.IDLE)
        self.state = SessionState.LOADING

    def load(self, challenge: Challenge) -> None:
        self._require(SessionState.LOADING)
        self.challenge = challenge
        self.buffer = challenge.starter_code
        self.state = SessionState.READY

    def can_reveal_hint(self) -> bool:
        return (
            self.state == SessionState.READY
            and self.challenge is not None
            and self.revealed_hint_count < len(self.challenge.hints)
        )

    def check_hint_available(self) -> None:
        self._require(SessionState.READY)
        if not self.can_reveal_hint():
            raise NoHintsRemaining("No hints left for this challenge")

    def reveal_hint(self) -> str:
        self.check_hint_available()
        hint = self.challenge.hints[self.revealed_hint_count]
        self.revealed_hint_count += 1
        return hint

    def withdraw_hint(self) -> None:
        """Take back the most recent reveal when it could not be paid for."""
        if self.revealed_hint_count > 0:
            self.revealed_hint_count -= 1

    def begin_submit(self, code: str) -> None:
        self._require(SessionState.READY)
        self.buffer = code
        self.state = SessionState.SUBMITTING

    def abort_submit(self) -> None:
        """Grading or payout did not complete; the attempt does not count."""
        if self.state == SessionState.SUBMITTING:
            self.state = SessionState.READY

    def record_result(self, result: Result) -> None:
        self._require(SessionState.SUBMITTING)
        self.last_result = result
        if result.passed:
            self.state = SessionState.PASSED
        else:
            self.attempt_count += 1
            self.state = SessionState.READY

    def register_tab_hidden(self) -> bool:
        """Count a visibility violation. Returns True if it ended the session."""
        if self.state not in WATCHED_STATES:
            return False
        self.cheat_warning_count += 1
        if self.cheat_warning_count >= MAX_CHEAT_WARNINGS:
            self.last_result = Result(passed=False, stars=0, feedback=TERMINATED_FEEDBACK)
            self.state = SessionState.FAILED
            return True
        return False

    def view(self) -> Dict[str, Any]:
        challenge = None
        if self.challenge is not None:
            challenge = {
                "title": self.challenge.title,
                "description": self.challenge.description,
                "starter_code": self.challenge.starter_code,
                "hints": self.challenge.hints[: self.revealed_hint_count],
                "hint_count": len(self.challenge.hints),
            }
        return {
            "id": self.id,
            "skill_id": self.skill_id,
            "skill_name": self.skill_name,
            "level": self.level,
            "boss": is_boss_level(self.level),
            "difficulty": difficulty(self.level),
            "state": self.state.value,
            "challenge": challenge,
            "buffer": self.buffer,
            "attempt_count": self.attempt_count,
            "cheat_warning_count": self.cheat_warning_count,
            "revealed_hint_count": self.revealed_hint_count,
            "hint_cost": HINT_COST,
            "last_result": self.last_result.model_dump() if self.last_result else None,
            "reward": self.reward,
        }
