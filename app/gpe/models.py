"""Goal progress contract — Pydantic v2 models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AfterValidator, BaseModel, Field, model_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Naive datetimes are read as UTC; aware ones are normalized to UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]

EventType = Literal[
    "finance_transaction",
    "task_completed",
    "habit_marked",
    "focus_session",
    "manual_update",
]


class GoalProgressType(str, Enum):
    financial = "financial"
    quantitative = "quantitative"
    skill = "skill"
    project = "project"
    streak = "streak"


class GoalCategory(str, Enum):
    financial = "financial"
    personal = "personal"
    career = "career"
    health = "health"
    education = "education"


class PaceCadence(str, Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class GoalStatus(str, Enum):
    on_track = "on_track"
    at_risk = "at_risk"
    behind = "behind"


# ---------------------------------------------------------------------------
# Track configuration (tagged union on `type`)
# ---------------------------------------------------------------------------

class _TrackBase(BaseModel):
    id: str
    target: FiniteFloat
    baseline: FiniteFloat = 0.0
    unit: str | None = None
    weight: FiniteFloat = Field(default=1.0, ge=0.0)


class MoneyTrackConfig(_TrackBase):
    type: Literal["money"] = "money"
    currency: str
    allow_negative: bool = False


class TimeTrackConfig(_TrackBase):
    type: Literal["time"] = "time"
    cadence: Literal["daily", "weekly", "monthly"] = "weekly"
    minutes_per_unit: float = 1.0
    xp_ratio: float | None = None  # XP per minute for skill goals


class MilestoneConfig(BaseModel):
    id: str
    title: str
    weight: FiniteFloat | None = None
    target_value: float | None = None
    auto_complete_from_task: bool = False


class MilestoneTrackConfig(_TrackBase):
    type: Literal["milestone"] = "milestone"
    milestones: list[MilestoneConfig] = Field(default_factory=list)

    def find_milestone(self, milestone_id: str) -> MilestoneConfig | None:
        return next((m for m in self.milestones if m.id == milestone_id), None)


class StreakTrackConfig(_TrackBase):
    type: Literal["streak"] = "streak"
    cadence: Literal["daily", "weekly"] = "daily"
    target_days: int = Field(default=1, ge=0)  # Per cadence window
    grace_days: int = Field(default=0, ge=0)


class TasksTrackConfig(_TrackBase):
    type: Literal["tasks"] = "tasks"
    scope: Literal["count", "duration"] = "count"
    cadence: Literal["daily", "weekly", "monthly"] | None = None


TrackConfig = Annotated[
    Union[
        MoneyTrackConfig,
        TimeTrackConfig,
        MilestoneTrackConfig,
        StreakTrackConfig,
        TasksTrackConfig,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Goal definition
# ---------------------------------------------------------------------------

class GoalSources(BaseModel):
    tasks: bool = False
    habits: bool = False
    finance: bool = False
    manual: bool = True
    focus: bool = False


class GoalDefinition(BaseModel):
    id: str
    type: GoalProgressType
    title: str
    category: GoalCategory
    description: str | None = None
    baseline: FiniteFloat = 0.0
    target: FiniteFloat
    unit: str = ""
    currency: str | None = None
    cadence: PaceCadence = PaceCadence.monthly
    deadline: UtcDatetime | None = None
    tracks: list[TrackConfig] = Field(default_factory=list)
    pacing_window_days: int | None = Field(default=None, gt=0)
    sources: GoalSources | None = None

    @model_validator(mode="after")
    def _unique_track_ids(self) -> GoalDefinition:
        seen: set[str] = set()
        for track in self.tracks:
            if track.id in seen:
                raise ValueError(f"Duplicate track id '{track.id}' in goal '{self.id}'")
            seen.add(track.id)
        return self

    def find_track(self, track_id: str) -> TrackConfig | None:
        return next((t for t in self.tracks if t.id == track_id), None)


# ---------------------------------------------------------------------------
# Ledger + derived state
# ---------------------------------------------------------------------------

class Contribution(BaseModel):
    """One signed delta on a track ledger. Immutable once appended."""

    model_config = {"frozen": True}

    timestamp: UtcDatetime
    value: FiniteFloat
    source: EventType
    ref_id: str | None = None
    note: str | None = None


class StreakMeta(BaseModel):
    current: int = 0
    best: int = 0
    grace_used: int = 0
    last_completion: datetime | None = None


class TrackState(BaseModel):
    config: TrackConfig
    contributions: list[Contribution] = Field(default_factory=list)
    current: float
    percent: float = Field(ge=0.0, le=1.0)
    streak: StreakMeta | None = None
    completed_milestones: list[str] | None = None


class GoalProgressRecord(BaseModel):
    goal_id: str
    definition: GoalDefinition
    tracks: dict[str, TrackState] = Field(default_factory=dict)
    percent: float = Field(ge=0.0, le=1.0)
    current: float
    remaining: float
    pace_actual: float | None = None
    pace_required: float | None = None
    pace_cadence: PaceCadence
    eta_date: datetime | None = None
    status: GoalStatus
    confidence: float = Field(ge=0.0, le=1.0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GoalProgressSnapshot(BaseModel):
    goal_id: str
    date: str  # ISO day key
    current_value: float
    percent_complete: float
    on_track: bool
    pace_actual: float | None = None
    pace_required: float | None = None
    eta_date: datetime | None = None
    status: GoalStatus
    confidence: float


# ---------------------------------------------------------------------------
# Read-only projections
# ---------------------------------------------------------------------------

class GoalWidgetItem(BaseModel):
    id: str
    title: str
    progress: int  # 0–100
    current: float
    target: float
    unit: str
    category: GoalCategory
    status: GoalStatus
    eta_label: str | None = None
    pace_actual: float | None = None
    pace_required: float | None = None


class GoalSummaryMetrics(BaseModel):
    remaining_label: str
    pace_label: str
    forecast_label: str
