"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.gpe.engine import GoalProgressEngine
from app.gpe.models import Contribution, GoalDefinition, MoneyTrackConfig
from app.gpe.publisher import HomeWidgetBridge, InsightsBridge
from app.gpe.router import get_engine, get_insights
from app.main import app

# Wednesday; the ISO week starts Monday 2026-03-16
FIXED_NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_contribution(
    value: float,
    ts: datetime | None = None,
    source: str = "manual_update",
    ref_id: str | None = None,
) -> Contribution:
    return Contribution(timestamp=ts or FIXED_NOW, value=value, source=source, ref_id=ref_id)


def days_ago(days: float, hours: float = 0) -> datetime:
    return FIXED_NOW - timedelta(days=days, hours=hours)


def make_definition(goal_id: str = "savings", **overrides: Any) -> GoalDefinition:
    data: dict[str, Any] = dict(
        id=goal_id,
        type="financial",
        title=goal_id.replace("-", " ").title(),
        category="financial",
        baseline=0.0,
        target=100.0,
        unit="USD",
        currency="USD",
        cadence="weekly",
        tracks=[MoneyTrackConfig(id="cash", target=100.0, currency="USD")],
    )
    data.update(overrides)
    return GoalDefinition(**data)


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def engine(clock) -> GoalProgressEngine:
    return GoalProgressEngine(clock=clock, config=make_settings(), tz=timezone.utc)


@pytest.fixture()
def bridges(engine) -> tuple[HomeWidgetBridge, InsightsBridge]:
    home_widget = HomeWidgetBridge()
    insights = InsightsBridge()
    engine.bus.subscribe(home_widget)
    engine.bus.subscribe(insights)
    return home_widget, insights


@pytest.fixture()
def override_engine(engine, bridges):
    """Point the API dependencies at the test engine; no lifespan needed."""
    _, insights = bridges
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_insights] = lambda: insights
    yield engine
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_engine):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
