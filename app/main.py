from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.db import make_engine
from app.gpe.engine import GoalProgressEngine
from app.gpe.presets import list_seed_definitions, seed_events
from app.gpe.publisher import HomeWidgetBridge, InsightsBridge
from app.gpe.router import router as gpe_router
from app.gpe.sql_store import SqlGoalStore
from app.gpe.store import InMemoryGoalStore
from app.log import configure_logging


def build_engine() -> tuple[GoalProgressEngine, HomeWidgetBridge, InsightsBridge]:
    """Engine wired to the configured store with both bridges subscribed."""
    store = SqlGoalStore(make_engine()) if settings.gpe_store == "sql" else InMemoryGoalStore()
    engine = GoalProgressEngine(store=store)
    home_widget = HomeWidgetBridge()
    insights = InsightsBridge(max_per_goal=settings.gpe_max_snapshots_per_goal)
    engine.bus.subscribe(home_widget)
    engine.bus.subscribe(insights)
    return engine, home_widget, insights


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    engine, home_widget, insights = build_engine()
    # Seed only an empty store so restarts on the SQL store keep real progress
    if settings.gpe_seed_defaults and not engine.list_goal_definitions():
        engine.initialize(list_seed_definitions(), seed_events(engine.now()))
    else:
        engine.initialize()
    app.state.engine = engine
    app.state.home_widget = home_widget
    app.state.insights = insights
    yield


app = FastAPI(title="Goal Progress Engine", version="0.1.0", lifespan=lifespan)
app.include_router(gpe_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "gpe": {
            "goals": "/gpe/goals",
            "goal_detail": "/gpe/goals/{goal_id}",
            "progress": "/gpe/goals/{goal_id}/progress",
            "snapshots": "/gpe/goals/{goal_id}/snapshots",
            "summary": "/gpe/goals/{goal_id}/summary",
            "events": "/gpe/events",
            "widget": "/gpe/widget",
            "insights": "/gpe/insights/snapshots",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
