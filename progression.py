"""
Per-skill unlock ladder: 20 levels, up to 3 stars each, a boss every 5th.
"""
from datetime import datetime
from typing import Optional

from errors import LevelNotUnlocked
from schemas import MAX_LEVEL, MAX_STARS, Result, Skill, utcnow

BOSS_INTERVAL = 5
REWARD_PER_LEVEL = 100

DIFFICULTIES = [
    "Novice", "Novice", "Beginner", "Beginner", "BOSS: Basic",
    "Intermediate", "Intermediate", "Adept", "Adept", "BOSS: Problem Solving",
    "Advanced", "Advanced", "Expert", "Expert", "BOSS: System Design",
    "Master", "Master", "Grandmaster", "Grandmaster", "FINAL BOSS",
]


def is_boss_level(level: int) -> bool:
    return level % BOSS_INTERVAL == 0


def difficulty(level: int) -> str:
    return DIFFICULTIES[min(max(level, 1), MAX_LEVEL) - 1]


def progress_percent(unlocked_level: int) -> int:
    # floor, never round up
    return unlocked_level * 100 // MAX_LEVEL


def is_mastered(skill: Skill) -> bool:
    return skill.level_stars.get(MAX_LEVEL, 0) > 0


def reward_for(level: int, stars: int) -> int:
    # Stars do not change the payout, only the level does.
    return level * REWARD_PER_LEVEL


def check_attemptable(skill: Skill, level: int) -> None:
    if not 1 <= level <= MAX_LEVEL:
        raise LevelNotUnlocked(f"Level {level} is outside 1..{MAX_LEVEL}")
    if level > skill.unlocked_level:
        raise LevelNotUnlocked(
            f"Level {level} of {skill.name} is locked (unlocked up to {skill.unlocked_level})"
        )


def apply_result(skill: Skill, level: int, result: Result, now: Optional[datetime] = None) -> bool:
    """Apply a graded attempt to the skill. Returns True when the skill changed.

    Failing results leave the record alone; attempt counting belongs to the
    challenge session.
    """
    if not result.passed:
        return False
    check_attemptable(skill, level)
    stars = min(max(result.stars, 1), MAX_STARS)
    skill.level_stars[level] = max(skill.level_stars.get(level, 0), stars)
    if level == skill.unlocked_level and level < MAX_LEVEL:
        skill.unlocked_level = level + 1
    skill.level = progress_percent(skill.unlocked_level)
    skill.last_practiced = now or utcnow()
    return True
