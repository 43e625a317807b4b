"""
Database Schemas for the Skill Tracker

Each Pydantic model below that maps to a MongoDB collection says so in its
docstring. The collection name is the lowercase of the class name, except the
economy ledger which lives in "ledger".
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

MAX_LEVEL = 20
MAX_STARS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are already UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Category(str, Enum):
    FRONTEND = "Frontend"
    BACKEND = "Backend"
    TOOLS = "Tools"
    SOFT_SKILLS = "Soft Skills"
    LANGUAGES = "Languages"


class Resource(BaseModel):
    title: str = Field(..., description="Resource title")
    url: str = Field(..., description="Link to the resource")


class Prerequisite(BaseModel):
    skill_name: str = Field(..., min_length=1, description="Name of the required skill")
    required_level: int = Field(1, ge=1, le=MAX_LEVEL, description="Derived level the required skill must reach")


class Skill(BaseModel):
    """
    A user's skill on the 20-level unlock ladder
    Collection: "skill"
    """
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id, description="Unique id for the skill")
    user_id: str = Field(..., description="Owner identifier")
    name: str = Field(..., min_length=1, description="Skill name shown on the map")
    category: Category = Field(Category.TOOLS.value, description="Skill category")
    unlocked_level: int = Field(1, ge=1, le=MAX_LEVEL, description="Highest level the user may attempt")
    level_stars: Dict[int, int] = Field(default_factory=dict, description="Best stars earned per passed level")
    level: int = Field(0, ge=0, le=100, description="Progress percent derived from unlocked_level")
    target: str = Field("Intermediate", description="Beginner | Intermediate | Expert")
    resources: List[Resource] = Field(default_factory=list, description="Learning resources")
    last_practiced: datetime = Field(default_factory=utcnow, description="Last passing attempt or creation time")
    prerequisites: List[Prerequisite] = Field(default_factory=list, description="Skills that gate this one")
    version: int = Field(0, ge=0, description="Optimistic concurrency counter")

    @field_validator("last_practiced")
    @classmethod
    def _utc(cls, value):
        return _as_utc(value)

    @field_validator("level_stars")
    @classmethod
    def _stars_in_range(cls, value):
        for lvl, stars in value.items():
            if not 1 <= lvl <= MAX_LEVEL:
                raise ValueError(f"level {lvl} outside 1..{MAX_LEVEL}")
            if not 0 <= stars <= MAX_STARS:
                raise ValueError(f"stars {stars} outside 0..{MAX_STARS}")
        return value

    @field_serializer("level_stars")
    def _string_keys(self, value):
        # Mongo document keys must be strings
        return {str(lvl): stars for lvl, stars in value.items()}


class Equipped(BaseModel):
    theme: str = Field("theme-light", description="Equipped theme item id")
    title: str = Field("title-novice", description="Equipped title item id")


class EconomyLedger(BaseModel):
    """
    Per-user XP balances, streak and cosmetics
    Collection: "ledger"
    """
    user_id: str = Field(..., description="Owner identifier")
    spendable_xp: int = Field(0, ge=0, description="Spendable XP balance")
    lifetime_xp: int = Field(0, ge=0, description="Lifetime XP used for rank")
    streak: int = Field(1, ge=0, description="Consecutive active days")
    last_activity: datetime = Field(default_factory=utcnow)
    inventory: List[str] = Field(default_factory=lambda: ["theme-light", "title-novice"])
    equipped: Equipped = Field(default_factory=Equipped)
    version: int = Field(0, ge=0, description="Optimistic concurrency counter")

    @field_validator("last_activity")
    @classmethod
    def _utc(cls, value):
        return _as_utc(value)

    @property
    def rank(self) -> int:
        return self.lifetime_xp // 100 + 1

    @property
    def rank_progress(self) -> int:
        return self.lifetime_xp % 100


class ShopItem(BaseModel):
    id: str
    name: str
    type: Literal["theme", "title"]
    cost: int = Field(..., ge=0)
    description: str
    icon: Optional[str] = None


class Challenge(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    starter_code: str = ""
    hints: List[str] = Field(default_factory=list)


class Result(BaseModel):
    passed: bool
    stars: int = Field(0, ge=0, le=MAX_STARS)
    feedback: str = ""


class SkillSuggestion(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = "Recommended"
