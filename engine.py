"""
Skill mastery engine: the commands the API exposes.

Every command loads the aggregates it needs from the store, applies the
domain rules and writes back. Challenge sessions are the only in-memory
state. When a challenge passes, the ledger credit is written before the
level advance, and the session only closes once both have landed. A payout
that fails part way can be resubmitted without being credited twice.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from pymongo.errors import PyMongoError

import ledger as economy
from challenge import HINT_COST, ChallengeSession
from collaborators import ChallengeGenerator, ChallengeGrader, ResourceRecommender, RoleGapAnalyzer
from database import LedgerStore, SkillStore
from decay import is_decaying
from directory import (
    BatchAddResult,
    add_skills_from_suggestions,
    append_resources,
    create_skill,
    delete_skill,
    update_skill,
)
from errors import CollaboratorUnavailable, LockedSkill, RecordNotFound, SessionNotFound, SkillEngineError
from prerequisites import derived_level, index_by_name, resolve_lock
from progression import apply_result, check_attemptable, difficulty, is_boss_level, is_mastered, reward_for
from schemas import EconomyLedger, Result, Skill, SkillSuggestion, utcnow
from shop import get_item

logger = logging.getLogger(__name__)


@dataclass
class HintOutcome:
    session: ChallengeSession
    hint: str
    ledger: EconomyLedger


@dataclass
class SubmitOutcome:
    session: ChallengeSession
    ledger: Optional[EconomyLedger] = None
    skill: Optional[Skill] = None


class SkillEngine:
    def __init__(
        self,
        database,
        generator: ChallengeGenerator,
        grader: ChallengeGrader,
        recommender: Optional[ResourceRecommender] = None,
        analyzer: Optional[RoleGapAnalyzer] = None,
        clock: Callable = utcnow,
    ):
        self.skills = SkillStore(database)
        self.ledgers = LedgerStore(database, clock=clock)
        self.generator = generator
        self.grader = grader
        self.recommender = recommender
        self.analyzer = analyzer
        self.clock = clock
        self.sessions: Dict[str, ChallengeSession] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def skill_views(self, user_id: str) -> List[Dict[str, Any]]:
        """Skills annotated with lock and decay state. Nothing here is stored."""
        now = self.clock()
        skills = self.skills.list(user_id)
        by_name = index_by_name(skills)
        views = []
        for skill in skills:
            lock = resolve_lock(skill, by_name)
            view = skill.model_dump()
            view.update(
                locked=lock.locked,
                lock_reason=lock.reason,
                needs_practice=is_decaying(skill.last_practiced, now),
                mastered=is_mastered(skill),
                derived_level=derived_level(skill),
                next_level_boss=is_boss_level(skill.unlocked_level),
                next_level_difficulty=difficulty(skill.unlocked_level),
            )
            views.append(view)
        return views

    def dashboard(self, user_id: str) -> Dict[str, Any]:
        data = economy.summary(self.ledgers.get_or_create(user_id))
        data["skills"] = self.skill_views(user_id)
        return data

    def get_ledger(self, user_id: str) -> EconomyLedger:
        return self.ledgers.get_or_create(user_id)

    # ------------------------------------------------------------------
    # Skill directory
    # ------------------------------------------------------------------

    def _touch(self, user_id: str) -> EconomyLedger:
        now = self.clock()
        return self.ledgers.mutate(user_id, lambda l: economy.touch_activity(l, now))

    def create_skill(self, user_id: str, name: str, **fields) -> Skill:
        skill = create_skill(self.skills, user_id, name, now=self.clock(), **fields)
        self._touch(user_id)
        return skill

    def update_skill(self, user_id: str, skill_id: str, **fields) -> Skill:
        return update_skill(self.skills, user_id, skill_id, **fields)

    def delete_skill(self, user_id: str, skill_id: str) -> None:
        if not delete_skill(self.skills, user_id, skill_id):
            raise RecordNotFound(f"Skill {skill_id} not found")

    def add_skills(self, user_id: str, names: Sequence[str]) -> BatchAddResult:
        result = add_skills_from_suggestions(self.skills, user_id, names, now=self.clock())
        if result.created:
            self._touch(user_id)
        return result

    def suggest_skills(self, user_id: str, target_role: str):
        if self.analyzer is None:
            raise CollaboratorUnavailable("No role gap analyzer configured")
        current = [s.name for s in self.skills.list(user_id)]
        suggestions: List[SkillSuggestion] = self.analyzer.analyze(current, target_role)
        return suggestions, self.add_skills(user_id, [s.name for s in suggestions])

    def recommend_resources(self, user_id: str, skill_id: str) -> Skill:
        if self.recommender is None:
            raise CollaboratorUnavailable("No resource recommender configured")
        skill = self.skills.get(user_id, skill_id)
        return append_resources(self.skills, user_id, skill_id, self.recommender.suggest(skill.name))

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------

    def start_challenge(self, user_id: str, skill_id: str, level: int) -> ChallengeSession:
        skill = self.skills.get(user_id, skill_id)
        lock = resolve_lock(skill, index_by_name(self.skills.list(user_id)))
        if lock.locked:
            raise LockedSkill(f"{skill.name} is locked: {lock.reason}")
        check_attemptable(skill, level)

        session = ChallengeSession(user_id=user_id, skill_id=skill.id, skill_name=skill.name, level=level)
        session.begin_loading()
        try:
            challenge = self.generator.generate(skill.name, level)
        except CollaboratorUnavailable:
            logger.warning("challenge generation failed for %s level %d", skill.name, level)
            raise
        session.load(challenge)

        # one live session per user; starting another resets anti-cheat state
        for sid in [sid for sid, s in self.sessions.items() if s.user_id == user_id]:
            del self.sessions[sid]
        self.sessions[session.id] = session
        return session

    def get_session(self, user_id: str, session_id: str) -> ChallengeSession:
        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    def abandon(self, user_id: str, session_id: str) -> None:
        self.get_session(user_id, session_id)
        del self.sessions[session_id]

    def request_hint(self, user_id: str, session_id: str) -> HintOutcome:
        session = self.get_session(user_id, session_id)
        with session.hint_lock:
            # reserve the hint first so a repeated request cannot pay for it twice
            hint = session.reveal_hint()
            try:
                ledger = self.ledgers.mutate(user_id, lambda l: economy.debit(l, HINT_COST))
            except (SkillEngineError, PyMongoError):
                session.withdraw_hint()
                raise
        logger.info("%s bought hint %d for session %s", user_id, session.revealed_hint_count, session.id)
        return HintOutcome(session=session, hint=hint, ledger=ledger)

    def report_tab_hidden(self, user_id: str, session_id: str) -> ChallengeSession:
        session = self.get_session(user_id, session_id)
        if session.register_tab_hidden():
            logger.warning("session %s terminated by anti-cheat (%s)", session.id, user_id)
        return session

    def submit_solution(self, user_id: str, session_id: str, code: str) -> SubmitOutcome:
        session = self.get_session(user_id, session_id)
        session.begin_submit(code)
        try:
            result = self.grader.validate(session.challenge.description, code, session.attempt_count)
        except CollaboratorUnavailable:
            session.abort_submit()
            logger.warning("grading failed for session %s", session.id)
            raise
        if not result.passed:
            session.record_result(result)
            return SubmitOutcome(session=session)

        try:
            ledger, skill = self._pay_out(session, result)
        except (SkillEngineError, PyMongoError):
            # keep the session open so the caller can resubmit
            session.abort_submit()
            logger.warning("payout for session %s did not complete", session.id)
            raise
        session.record_result(result)
        logger.info(
            "%s passed %s level %d with %d stars, +%d XP (unlocked %d)",
            user_id, skill.name, session.level, result.stars, session.reward, skill.unlocked_level,
        )
        return SubmitOutcome(session=session, ledger=ledger, skill=skill)

    def _pay_out(self, session: ChallengeSession, result: Result):
        """Credit the reward once per session, then advance the skill.

        Both writes are safe to repeat: the credit is skipped once it has
        landed and ``apply_result`` only advances from the level just passed.
        """
        now = self.clock()
        if session.reward_paid:
            ledger = self.ledgers.get_or_create(session.user_id)
        else:
            reward = reward_for(session.level, result.stars)

            def pay(l: EconomyLedger) -> None:
                economy.credit(l, reward)
                economy.touch_activity(l, now)

            ledger = self.ledgers.mutate(session.user_id, pay)
            session.reward = reward
            session.reward_paid = True
        skill = self.skills.mutate(
            session.user_id, session.skill_id, lambda s: apply_result(s, session.level, result, now)
        )
        return ledger, skill

    # ------------------------------------------------------------------
    # Economy
    # ------------------------------------------------------------------

    def purchase(self, user_id: str, item_id: str) -> EconomyLedger:
        item = get_item(item_id)
        ledger = self.ledgers.mutate(user_id, lambda l: economy.purchase(l, item))
        logger.info("%s bought %s for %d XP", user_id, item.id, item.cost)
        return ledger

    def equip(self, user_id: str, item_id: str) -> EconomyLedger:
        item = get_item(item_id)
        return self.ledgers.mutate(user_id, lambda l: economy.equip(l, item))

    def penalize(self, user_id: str, amount: int) -> EconomyLedger:
        ledger = self.ledgers.mutate(user_id, lambda l: economy.penalize(l, amount), create=False)
        logger.warning("%s penalized %d XP", user_id, amount)
        return ledger
