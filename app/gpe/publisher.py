"""Snapshot publisher — read-only projections of progress records.

Nothing here writes back into the ledger. The two bridges are bus
subscribers: the home widget keeps the latest snapshot per goal, the
insights bridge keeps a per-day history.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone, tzinfo
from typing import Iterable

from pydantic import BaseModel, Field

from app.gpe.bus import GoalProgressUpdated
from app.gpe.calendar import iso_date_key
from app.gpe.models import (
    GoalProgressRecord,
    GoalProgressSnapshot,
    GoalStatus,
    GoalSummaryMetrics,
    GoalWidgetItem,
    PaceCadence,
)

STATUS_LABELS: dict[GoalStatus, str] = {
    GoalStatus.on_track: "On track",
    GoalStatus.at_risk: "At risk",
    GoalStatus.behind: "Behind",
}

CADENCE_SUFFIX: dict[PaceCadence, str] = {
    PaceCadence.none: "",
    PaceCadence.daily: "/ day",
    PaceCadence.weekly: "/ week",
    PaceCadence.monthly: "/ month",
}


def build_snapshot(
    record: GoalProgressRecord,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> GoalProgressSnapshot:
    return GoalProgressSnapshot(
        goal_id=record.goal_id,
        date=iso_date_key(now, tz),
        current_value=record.current,
        percent_complete=record.percent,
        on_track=record.status == GoalStatus.on_track,
        pace_actual=record.pace_actual,
        pace_required=record.pace_required,
        eta_date=record.eta_date,
        status=record.status,
        confidence=record.confidence,
    )


def progress_percent(percent: float) -> int:
    """0–1 fraction to a 0–100 integer, rounding halves up."""
    return int(math.floor(percent * 100.0 + 0.5))


def to_widget_item(record: GoalProgressRecord) -> GoalWidgetItem:
    definition = record.definition
    return GoalWidgetItem(
        id=record.goal_id,
        title=definition.title,
        progress=progress_percent(record.percent),
        current=record.current,
        target=definition.target,
        unit=definition.unit,
        category=definition.category,
        status=record.status,
        eta_label=record.eta_date.date().isoformat() if record.eta_date else None,
        pace_actual=record.pace_actual,
        pace_required=record.pace_required,
    )


def rank_widget_items(records: Iterable[GoalProgressRecord], limit: int) -> list[GoalWidgetItem]:
    """Highest percent first, then least remaining; at most `limit` items."""
    if limit <= 0:
        return []
    ranked = sorted(records, key=lambda r: (-r.percent, r.remaining))
    return [to_widget_item(r) for r in ranked[:limit]]


def _format_value(record: GoalProgressRecord, value: float) -> str:
    text = f"{value:,.2f}".rstrip("0").rstrip(".")
    suffix = record.definition.currency or record.definition.unit
    return f"{text} {suffix}".strip()


def summary_metrics(record: GoalProgressRecord) -> GoalSummaryMetrics:
    """Plain-text remaining / pace / forecast labels for a goal card."""
    if record.pace_actual is not None:
        pace = f"{_format_value(record, max(record.pace_actual, 0.0))} {CADENCE_SUFFIX[record.pace_cadence]}".strip()
    else:
        pace = "n/a"
    eta = record.eta_date.strftime("%b %Y") if record.eta_date else "no ETA"
    return GoalSummaryMetrics(
        remaining_label=f"{_format_value(record, record.remaining)} left",
        pace_label=pace,
        forecast_label=f"{STATUS_LABELS[record.status]} · {eta}",
    )


# ---------------------------------------------------------------------------
# Bus subscribers
# ---------------------------------------------------------------------------

class GoalsWidgetState(BaseModel):
    has_data: bool
    goals: list[GoalWidgetItem] = Field(default_factory=list)


class HomeWidgetBridge:
    """Latest snapshot per goal for the home-screen widget."""

    def __init__(self) -> None:
        self._latest: dict[str, GoalProgressSnapshot] = {}

    def __call__(self, event: GoalProgressUpdated) -> None:
        self._latest[event.snapshot.goal_id] = event.snapshot

    def latest(self, goal_id: str) -> GoalProgressSnapshot | None:
        return self._latest.get(goal_id)

    def widget_state(self, items: list[GoalWidgetItem]) -> GoalsWidgetState:
        return GoalsWidgetState(has_data=bool(items), goals=items)


class InsightsBridge:
    """Snapshot history for analytics, newest first, one per goal per day.

    At most `max_per_goal` days are kept for each goal.
    """

    def __init__(self, max_per_goal: int = 365) -> None:
        self.max_per_goal = max_per_goal
        self._history: list[GoalProgressSnapshot] = []

    def __call__(self, event: GoalProgressUpdated) -> None:
        snap = event.snapshot
        kept = 1
        history = [snap]
        for s in self._history:
            if s.goal_id != snap.goal_id:
                history.append(s)
            elif s.date != snap.date and kept < self.max_per_goal:
                history.append(s)
                kept += 1
        self._history = history

    def snapshots(self, goal_id: str | None = None) -> list[GoalProgressSnapshot]:
        if goal_id is None:
            return list(self._history)
        return [s for s in self._history if s.goal_id == goal_id]
