"""
Skill directory: creating, editing and removing a user's skills.

New skills always start on level 1 with no stars. Progression fields are
owned by the level ladder and cannot be set through here.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pymongo.errors import PyMongoError

from database import SkillStore
from errors import PrerequisiteCycle, SkillEngineError
from prerequisites import find_cycle, index_by_name
from schemas import Category, Prerequisite, Resource, Skill, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = Category.TOOLS

# Checked in order; the first table with a matching token wins.
CATEGORY_KEYWORDS = [
    (Category.FRONTEND, {
        "react", "vue", "angular", "svelte", "html", "css", "sass", "tailwind",
        "bootstrap", "frontend", "redux", "nextjs", "next", "jquery", "webpack", "vite", "ui", "ux", "figma",
    }),
    (Category.BACKEND, {
        "node", "nodejs", "express", "django", "flask", "fastapi", "spring", "rails", "laravel",
        "sql", "mysql", "postgres", "postgresql", "mongodb", "mongo", "redis", "graphql", "rest",
        "api", "backend", "microservices", "kafka", "rabbitmq", "nestjs", "dotnet", "asp",
    }),
    (Category.LANGUAGES, {
        "python", "java", "javascript", "typescript", "go", "golang", "rust", "c", "c++", "c#",
        "kotlin", "swift", "ruby", "php", "scala", "haskell", "elixir", "dart", "r", "perl", "lua",
    }),
    (Category.SOFT_SKILLS, {
        "communication", "leadership", "teamwork", "collaboration", "mentoring", "negotiation",
        "presentation", "public", "speaking", "management", "agile", "scrum", "empathy",
        "writing", "problem", "critical", "thinking", "time", "stakeholder",
    }),
    (Category.TOOLS, {
        "docker", "kubernetes", "k8s", "git", "github", "gitlab", "jenkins", "terraform",
        "ansible", "aws", "azure", "gcp", "linux", "bash", "ci", "cd", "jira", "nginx", "webpack",
    }),
]

_TOKEN = re.compile(r"[a-z0-9+#]+")


def classify_category(name: str) -> Category:
    tokens = set(_TOKEN.findall(name.lower()))
    # "Node.js" -> node, js ; "Next.js" -> next, js
    for category, keywords in CATEGORY_KEYWORDS:
        if tokens & keywords:
            return category
    return DEFAULT_CATEGORY


@dataclass
class BatchAddResult:
    created: List[Skill] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def _check_prerequisites(store: SkillStore, user_id: str, name: str, prerequisites: List[Prerequisite]) -> None:
    if not prerequisites:
        return
    cycle = find_cycle(name, prerequisites, index_by_name(store.list(user_id)))
    if cycle:
        raise PrerequisiteCycle(cycle)


def create_skill(
    store: SkillStore,
    user_id: str,
    name: str,
    category: Optional[Category] = None,
    target: str = "Intermediate",
    resources: Iterable[Resource] = (),
    prerequisites: Iterable[Prerequisite] = (),
    now: Optional[datetime] = None,
) -> Skill:
    name = name.strip()
    prerequisites = list(prerequisites)
    _check_prerequisites(store, user_id, name, prerequisites)
    skill = Skill(
        user_id=user_id,
        name=name,
        category=category or classify_category(name),
        target=target,
        resources=list(resources),
        prerequisites=prerequisites,
        last_practiced=now or utcnow(),
    )
    store.insert(skill)
    logger.info("created skill %s (%s) for %s", skill.name, skill.id, user_id)
    return skill


def update_skill(
    store: SkillStore,
    user_id: str,
    skill_id: str,
    name: Optional[str] = None,
    category: Optional[Category] = None,
    target: Optional[str] = None,
    prerequisites: Optional[List[Prerequisite]] = None,
) -> Skill:
    current = store.get(user_id, skill_id)
    new_name = name.strip() if name is not None else current.name
    if prerequisites is not None or name is not None:
        others = [s for s in store.list(user_id) if s.id != skill_id]
        reqs = prerequisites if prerequisites is not None else current.prerequisites
        cycle = find_cycle(new_name, reqs, index_by_name(others))
        if cycle:
            raise PrerequisiteCycle(cycle)

    def apply(skill: Skill) -> None:
        skill.name = new_name
        if category is not None:
            skill.category = Category(category).value
        if target is not None:
            skill.target = target
        if prerequisites is not None:
            skill.prerequisites = list(prerequisites)

    return store.mutate(user_id, skill_id, apply)


def delete_skill(store: SkillStore, user_id: str, skill_id: str) -> bool:
    # Other skills keep whatever prerequisite points at this name; they just
    # resolve as locked ("missing ...") from now on.
    deleted = store.delete(user_id, skill_id)
    if deleted:
        logger.info("deleted skill %s for %s", skill_id, user_id)
    return deleted


def add_skills_from_suggestions(
    store: SkillStore, user_id: str, names: Iterable[str], now: Optional[datetime] = None
) -> BatchAddResult:
    """Create every suggested skill the user does not have yet.

    Each skill is its own write. A failure is logged and reported under
    ``failed`` without undoing the skills created before it.
    """
    result = BatchAddResult()
    known = {s.name.strip().lower() for s in store.list(user_id)}
    for raw in names:
        name = (raw or "").strip()
        if not name:
            continue
        key = name.lower()
        if key in known:
            result.skipped.append(name)
            continue
        try:
            skill = create_skill(store, user_id, name, now=now)
        except (SkillEngineError, PyMongoError, ValueError) as e:
            logger.warning("batch add of %r for %s failed: %s", name, user_id, e)
            result.failed[name] = str(e)
            continue
        known.add(key)
        result.created.append(skill)
    return result


def append_resources(store: SkillStore, user_id: str, skill_id: str, resources: Iterable[Resource]) -> Skill:
    resources = list(resources)

    def apply(skill: Skill) -> None:
        seen = {r.url for r in skill.resources}
        for res in resources:
            if res.url not in seen:
                skill.resources.append(res)
                seen.add(res.url)

    return store.mutate(user_id, skill_id, apply)
