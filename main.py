import logging
import os
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import database
from collaborators import HttpCollaborators
from engine import SkillEngine
from errors import SkillEngineError
from ledger import summary
from schemas import Category, Prerequisite, Resource
from shop import list_items

app = FastAPI(title="Skill Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_engine: Optional[SkillEngine] = None


def get_engine() -> SkillEngine:
    global _engine
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    if _engine is None:
        ai = HttpCollaborators()
        _engine = SkillEngine(database.db, generator=ai, grader=ai, recommender=ai, analyzer=ai)
    return _engine


@app.exception_handler(SkillEngineError)
async def handle_engine_error(request: Request, exc: SkillEngineError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": type(exc).__name__})


@app.get("/")
def read_root():
    return {"message": "Skill Tracker Backend Running"}


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------

class SkillIn(BaseModel):
    user_id: str
    name: str = Field(..., min_length=1)
    category: Optional[Category] = None
    target: str = "Intermediate"
    resources: List[Resource] = Field(default_factory=list)
    prerequisites: List[Prerequisite] = Field(default_factory=list)


class SkillUpdate(BaseModel):
    user_id: str
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[Category] = None
    target: Optional[str] = None
    prerequisites: Optional[List[Prerequisite]] = None


class BatchIn(BaseModel):
    user_id: str
    names: List[str]


class RoleIn(BaseModel):
    user_id: str
    target_role: str = Field(..., min_length=1)


class UserIn(BaseModel):
    user_id: str


def _batch_response(result):
    return {
        "created": [s.model_dump() for s in result.created],
        "skipped": result.skipped,
        "failed": result.failed,
    }


@app.get("/api/skills/{user_id}")
def get_skills(user_id: str, engine: SkillEngine = Depends(get_engine)):
    return engine.dashboard(user_id)


@app.post("/api/skills")
def add_skill(body: SkillIn, engine: SkillEngine = Depends(get_engine)):
    skill = engine.create_skill(
        body.user_id,
        body.name,
        category=body.category,
        target=body.target,
        resources=body.resources,
        prerequisites=body.prerequisites,
    )
    return skill.model_dump()


@app.post("/api/skills/batch")
def add_skills(body: BatchIn, engine: SkillEngine = Depends(get_engine)):
    return _batch_response(engine.add_skills(body.user_id, body.names))


@app.post("/api/skills/suggest")
def suggest_skills(body: RoleIn, engine: SkillEngine = Depends(get_engine)):
    suggestions, result = engine.suggest_skills(body.user_id, body.target_role)
    response = _batch_response(result)
    response["suggestions"] = [s.model_dump() for s in suggestions]
    return response


@app.put("/api/skills/{skill_id}")
def edit_skill(skill_id: str, body: SkillUpdate, engine: SkillEngine = Depends(get_engine)):
    skill = engine.update_skill(
        body.user_id,
        skill_id,
        name=body.name,
        category=body.category,
        target=body.target,
        prerequisites=body.prerequisites,
    )
    return skill.model_dump()


@app.delete("/api/skills/{skill_id}")
def remove_skill(skill_id: str, user_id: str, engine: SkillEngine = Depends(get_engine)):
    engine.delete_skill(user_id, skill_id)
    return {"message": "Skill deleted"}


@app.post("/api/skills/{skill_id}/resources")
def recommend_resources(skill_id: str, body: UserIn, engine: SkillEngine = Depends(get_engine)):
    return engine.recommend_resources(body.user_id, skill_id).model_dump()


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------

class ChallengeIn(BaseModel):
    user_id: str
    skill_id: str
    level: int = Field(..., ge=1)


class SubmitIn(BaseModel):
    user_id: str
    code: str


@app.post("/api/challenges")
def start_challenge(body: ChallengeIn, engine: SkillEngine = Depends(get_engine)):
    return engine.start_challenge(body.user_id, body.skill_id, body.level).view()


@app.get("/api/challenges/{session_id}")
def get_challenge(session_id: str, user_id: str, engine: SkillEngine = Depends(get_engine)):
    return engine.get_session(user_id, session_id).view()


@app.delete("/api/challenges/{session_id}")
def abandon_challenge(session_id: str, user_id: str, engine: SkillEngine = Depends(get_engine)):
    engine.abandon(user_id, session_id)
    return {"status": "ok"}


@app.post("/api/challenges/{session_id}/hint")
def buy_hint(session_id: str, body: UserIn, engine: SkillEngine = Depends(get_engine)):
    outcome = engine.request_hint(body.user_id, session_id)
    return {"hint": outcome.hint, "session": outcome.session.view(), "ledger": summary(outcome.ledger)}


@app.post("/api/challenges/{session_id}/submit")
def submit_challenge(session_id: str, body: SubmitIn, engine: SkillEngine = Depends(get_engine)):
    outcome = engine.submit_solution(body.user_id, session_id, body.code)
    return {
        "session": outcome.session.view(),
        "ledger": summary(outcome.ledger) if outcome.ledger else None,
        "skill": outcome.skill.model_dump() if outcome.skill else None,
    }


@app.post("/api/challenges/{session_id}/tab-hidden")
def tab_hidden(session_id: str, body: UserIn, engine: SkillEngine = Depends(get_engine)):
    return engine.report_tab_hidden(body.user_id, session_id).view()


# ---------------------------------------------------------------------------
# Shop & ledger
# ---------------------------------------------------------------------------

class ShopIn(BaseModel):
    user_id: str
    item_id: str


class PenaltyIn(BaseModel):
    user_id: str
    amount: int = Field(..., ge=0)


@app.get("/api/shop/items")
def shop_items():
    return [item.model_dump() for item in list_items()]


@app.post("/api/shop/buy")
def buy_item(body: ShopIn, engine: SkillEngine = Depends(get_engine)):
    return summary(engine.purchase(body.user_id, body.item_id))


@app.post("/api/shop/equip")
def equip_item(body: ShopIn, engine: SkillEngine = Depends(get_engine)):
    return summary(engine.equip(body.user_id, body.item_id))


@app.get("/api/user/{user_id}/ledger")
def get_ledger(user_id: str, engine: SkillEngine = Depends(get_engine)):
    return summary(engine.get_ledger(user_id))


@app.post("/api/user/penalize")
def penalize(body: PenaltyIn, engine: SkillEngine = Depends(get_engine)):
    return summary(engine.penalize(body.user_id, body.amount))


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }

    db = database.db
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name if hasattr(db, "name") else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"

    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
