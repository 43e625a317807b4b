"""
Prerequisite resolution between a user's skills.

Only the first prerequisite of a skill gates it. The list shape is kept so
stored records round-trip, but resolution never looks past entry zero.
"""
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from schemas import MAX_LEVEL, Prerequisite, Skill


class LockState(NamedTuple):
    locked: bool
    reason: Optional[str] = None


UNLOCKED = LockState(False)


def index_by_name(skills: Iterable[Skill]) -> Dict[str, Skill]:
    return {skill.name.strip().lower(): skill for skill in skills}


def derived_level(skill: Skill) -> int:
    """Level another skill sees when checking this one as a prerequisite."""
    return min(skill.level // 5 + 1, MAX_LEVEL)


def resolve_lock(skill: Skill, skills_by_name: Mapping[str, Skill]) -> LockState:
    if not skill.prerequisites:
        return UNLOCKED
    req = skill.prerequisites[0]
    parent = skills_by_name.get(req.skill_name.strip().lower())
    if parent is None:
        return LockState(True, f"missing {req.skill_name}")
    if derived_level(parent) < req.required_level:
        return LockState(True, f"Need {req.skill_name} Lvl.{req.required_level}")
    return UNLOCKED


def find_cycle(
    skill_name: str,
    prerequisites: List[Prerequisite],
    skills_by_name: Mapping[str, Skill],
) -> Optional[List[str]]:
    """Return the loop ``[skill_name, ..., skill_name]`` the edit would close, if any.

    Every listed prerequisite counts as an edge here, not just the first, so a
    later change to resolution rules cannot surface a cycle that is already
    stored.
    """
    start = skill_name.strip().lower()

    def edges(name: str) -> List[str]:
        if name == start:
            reqs = prerequisites
        else:
            node = skills_by_name.get(name)
            reqs = node.prerequisites if node else []
        return [r.skill_name.strip().lower() for r in reqs]

    stack = [(start, [skill_name])]
    seen = set()
    while stack:
        name, path = stack.pop()
        for nxt in edges(name):
            display = skills_by_name[nxt].name if nxt in skills_by_name else nxt
            if nxt == start:
                return path + [skill_name]
            if nxt in seen:
                continue
            seen.add(nxt)
            stack.append((nxt, path + [display]))
    return None
