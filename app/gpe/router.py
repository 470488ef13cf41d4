"""Goal progress HTTP router — registry, ingestion, projections.

Handlers are `async def` and call the engine inline, so requests are
serialized on the event loop and the engine keeps a single writer. With
`gpe_store="sql"` each call does blocking database I/O on the loop; that
store targets single-user deployments.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.auth import verify_api_key
from app.gpe.engine import GoalProgressEngine
from app.gpe.events import parse_event
from app.gpe.models import (
    GoalDefinition,
    GoalProgressRecord,
    GoalProgressSnapshot,
    GoalSummaryMetrics,
    GoalWidgetItem,
)
from app.gpe.publisher import InsightsBridge

router = APIRouter(prefix="/gpe", tags=["goals"])


def get_engine(request: Request) -> GoalProgressEngine:
    return request.app.state.engine


def get_insights(request: Request) -> InsightsBridge:
    return request.app.state.insights


def _require_goal(engine: GoalProgressEngine, goal_id: str) -> GoalDefinition:
    definition = engine.get_goal_definition(goal_id)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Unknown goal: {goal_id}")
    return definition


def _recompute(engine: GoalProgressEngine, goal_id: str) -> GoalProgressRecord:
    record = engine.update_goal_progress(goal_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown goal: {goal_id}")
    return record


# ---------------------------------------------------------------------------
# /gpe/goals
# ---------------------------------------------------------------------------


@router.get("/goals", response_model=list[GoalDefinition])
async def goals_list(
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> list[GoalDefinition]:
    return engine.list_goal_definitions()


@router.put("/goals/{goal_id}", response_model=GoalProgressRecord)
async def goal_register(
    goal_id: str,
    definition: GoalDefinition,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalProgressRecord:
    if definition.id != goal_id:
        raise HTTPException(status_code=422, detail=f"Body id '{definition.id}' does not match path '{goal_id}'")
    engine.register_goal(definition)
    return _recompute(engine, goal_id)


@router.get("/goals/{goal_id}", response_model=GoalDefinition)
async def goal_detail(
    goal_id: str,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalDefinition:
    return _require_goal(engine, goal_id)


@router.get("/goals/{goal_id}/progress", response_model=GoalProgressRecord)
async def goal_progress(
    goal_id: str,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalProgressRecord:
    record = engine.get_goal_record(goal_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No progress recorded for goal: {goal_id}")
    return record


@router.post("/goals/{goal_id}/recompute", response_model=GoalProgressRecord)
async def goal_recompute(
    goal_id: str,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalProgressRecord:
    return _recompute(engine, goal_id)


@router.get("/goals/{goal_id}/snapshots", response_model=list[GoalProgressSnapshot])
async def goal_snapshots(
    goal_id: str,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> list[GoalProgressSnapshot]:
    _require_goal(engine, goal_id)
    return engine.get_snapshots(goal_id)


@router.get("/goals/{goal_id}/summary", response_model=GoalSummaryMetrics)
async def goal_summary(
    goal_id: str,
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalSummaryMetrics:
    metrics = engine.get_summary_metrics(goal_id)
    if metrics is None:
        raise HTTPException(status_code=404, detail=f"No progress recorded for goal: {goal_id}")
    return metrics


# ---------------------------------------------------------------------------
# /gpe/events
# ---------------------------------------------------------------------------


@router.post("/events", response_model=GoalProgressRecord | None)
async def events_ingest(
    payload: dict[str, Any] = Body(...),
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
) -> GoalProgressRecord | None:
    try:
        event = parse_event(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False))
    return engine.ingest_goal_event(event)


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


@router.get("/widget", response_model=list[GoalWidgetItem])
async def widget_items(
    engine: GoalProgressEngine = Depends(get_engine),
    _: str = Depends(verify_api_key),
    limit: int | None = Query(default=None, ge=0, le=50, description="Max items (default from settings)"),
) -> list[GoalWidgetItem]:
    return engine.get_goal_widget_items(limit)


@router.get("/insights/snapshots", response_model=list[GoalProgressSnapshot])
async def insights_snapshots(
    insights: InsightsBridge = Depends(get_insights),
    _: str = Depends(verify_api_key),
    goal_id: str | None = Query(default=None, description="Filter by goal"),
) -> list[GoalProgressSnapshot]:
    return insights.snapshots(goal_id)
