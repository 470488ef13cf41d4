"""Inbound domain events — a discriminated union on `type`.

Numeric fields are validated at construction: values must be finite and
minutes/amounts non-negative (the finance `direction` carries the sign).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from app.gpe.models import FiniteFloat, UtcDatetime

NonNegative = Annotated[float, Field(ge=0.0, allow_inf_nan=False)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _GoalEventBase(BaseModel):
    goal_id: str
    timestamp: UtcDatetime = Field(default_factory=_utcnow)
    track_id: str | None = None
    source_id: str | None = None


class FinanceTransactionEvent(_GoalEventBase):
    type: Literal["finance_transaction"] = "finance_transaction"
    amount: NonNegative
    currency: str
    direction: Literal["inflow", "outflow"]

    @property
    def signed_amount(self) -> float:
        return -self.amount if self.direction == "outflow" else self.amount


class TaskCompletedEvent(_GoalEventBase):
    type: Literal["task_completed"] = "task_completed"
    task_id: str
    duration_minutes: NonNegative | None = None
    milestone_id: str | None = None


class HabitMarkedEvent(_GoalEventBase):
    type: Literal["habit_marked"] = "habit_marked"
    habit_id: str
    completed: bool
    minutes: NonNegative | None = None


class FocusSessionEvent(_GoalEventBase):
    type: Literal["focus_session"] = "focus_session"
    session_id: str
    minutes: NonNegative
    quality: Literal["low", "medium", "high"] | None = None


class ManualUpdateEvent(_GoalEventBase):
    type: Literal["manual_update"] = "manual_update"
    value: FiniteFloat
    note: str | None = None


GoalEvent = Annotated[
    Union[
        FinanceTransactionEvent,
        TaskCompletedEvent,
        HabitMarkedEvent,
        FocusSessionEvent,
        ManualUpdateEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[GoalEvent] = TypeAdapter(GoalEvent)


def parse_event(payload: dict) -> GoalEvent:
    """Build the matching event model from a raw payload. Raises ValidationError."""
    return _event_adapter.validate_python(payload)


def parse_event_json(raw: str | bytes) -> GoalEvent:
    return _event_adapter.validate_json(raw)
