import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth import get_user_id
from config import load_settings, setup_logging
from dashboard import DashboardBuilder, OnboardingRequired
from db import init_db, db_check, engine
from preferences import load_preferences, save_preferences
from votes import SECTIONS, VOTE_VALUES, record_vote

# =========================================================
# App bootstrapping
# =========================================================
settings = load_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# one builder (and so one cache) per process
dashboard_builder = DashboardBuilder(settings)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    logger.info("Database ready")
    yield


app = FastAPI(title="crypto-news-dashboard", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OnboardingRequired)
async def onboarding_required_handler(_, __: OnboardingRequired):
    return JSONResponse(
        status_code=403,
        content={"message": "Please complete onboarding first", "requiresOnboarding": True},
    )


# =========================================================
# Request models
# =========================================================
class PreferencesReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    crypto_assets: list[str] = Field(default_factory=list, alias="cryptoAssets")
    investor_type: str = Field(default="", alias="investorType")
    content_types: list[str] = Field(default_factory=list, alias="contentTypes")


class VoteReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    section: str = ""
    item_id: str = Field(default="", alias="itemId")
    vote: str = ""

    @field_validator("item_id", mode="before")
    @classmethod
    def _item_id_as_str(cls, value):
        # upstream ids may arrive as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


# =========================================================
# Health
# =========================================================
@app.get("/", response_class=PlainTextResponse)
def root():
    return "Backend is running"


@app.get("/health")
def health():
    db_check()
    return {"status": "ok"}


# =========================================================
# Onboarding
# =========================================================
@app.get("/api/user/status")
def user_status(user_id: int = Depends(get_user_id)):
    with engine.connect() as conn:
        prefs = load_preferences(conn, user_id)

    return {
        "onboardingCompleted": prefs is not None,
        "hasPreferences": bool(prefs and prefs["cryptoAssets"]),
    }


@app.post("/api/user/preferences")
def user_preferences(data: PreferencesReq, user_id: int = Depends(get_user_id)):
    with engine.begin() as conn:
        save_preferences(conn, user_id, data.crypto_assets, data.investor_type, data.content_types)

    return {"message": "Preferences saved successfully"}


# =========================================================
# Dashboard
# =========================================================
@app.get("/api/dashboard")
async def dashboard(user_id: int = Depends(get_user_id)):
    try:
        with engine.connect() as conn:
            prefs = load_preferences(conn, user_id)
        return await dashboard_builder.build(engine, prefs)
    except OnboardingRequired:
        raise
    except Exception:
        logger.exception("Dashboard error for user %s", user_id)
        raise HTTPException(500, "Server error, please try again")


# =========================================================
# Votes
# =========================================================
@app.post("/api/vote")
def vote(data: VoteReq, user_id: int = Depends(get_user_id)):
    if not data.section or not data.item_id or not data.vote:
        raise HTTPException(400, "section, itemId and vote required")
    if data.section not in SECTIONS:
        raise HTTPException(400, "Invalid section")
    if data.vote not in VOTE_VALUES:
        raise HTTPException(400, "vote must be up or down")

    with engine.begin() as conn:
        record_vote(conn, user_id, data.section, data.item_id, data.vote)

    return {"message": "Vote recorded"}
