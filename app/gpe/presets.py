"""Default seed goals — configuration only.

Loaded by the API on startup when `gpe_seed_defaults` is enabled. Seed
values are replayed as manual updates on each goal's first track.
"""

from __future__ import annotations

from datetime import datetime

from app.gpe.events import ManualUpdateEvent
from app.gpe.models import (
    GoalCategory,
    GoalDefinition,
    GoalProgressType,
    GoalSources,
    MilestoneConfig,
    MilestoneTrackConfig,
    MoneyTrackConfig,
    PaceCadence,
    StreakTrackConfig,
    TasksTrackConfig,
    TimeTrackConfig,
)

DEFAULT_GOAL_DEFINITIONS: dict[str, GoalDefinition] = {
    "dream-car": GoalDefinition(
        id="dream-car",
        type=GoalProgressType.financial,
        title="Dream car",
        category=GoalCategory.financial,
        baseline=0.0,
        target=12_000_000.0,
        unit="UZS",
        currency="UZS",
        cadence=PaceCadence.monthly,
        deadline=datetime(2027, 12, 31),
        tracks=[MoneyTrackConfig(id="savings", target=12_000_000.0, currency="UZS")],
        sources=GoalSources(finance=True, manual=True),
    ),
    "emergency-fund": GoalDefinition(
        id="emergency-fund",
        type=GoalProgressType.financial,
        title="Emergency fund",
        category=GoalCategory.financial,
        target=6_000_000.0,
        unit="UZS",
        currency="UZS",
        cadence=PaceCadence.monthly,
        deadline=datetime(2027, 6, 30),
        tracks=[MoneyTrackConfig(id="reserve", target=6_000_000.0, currency="UZS")],
        sources=GoalSources(finance=True, manual=True),
    ),
    "fitness": GoalDefinition(
        id="fitness",
        type=GoalProgressType.quantitative,
        title="Workout sessions",
        category=GoalCategory.health,
        target=150.0,
        unit="sessions",
        cadence=PaceCadence.weekly,
        tracks=[
            TasksTrackConfig(id="sessions", target=150.0, scope="count", cadence="weekly"),
            StreakTrackConfig(id="daily-move", target=1.0, cadence="daily", target_days=1, grace_days=1, weight=0.5),
        ],
        sources=GoalSources(tasks=True, habits=True, manual=True),
    ),
    "language": GoalDefinition(
        id="language",
        type=GoalProgressType.skill,
        title="Learn English",
        category=GoalCategory.education,
        target=100.0,
        unit="lessons",
        cadence=PaceCadence.weekly,
        pacing_window_days=28,
        tracks=[
            TasksTrackConfig(id="lessons", target=100.0, scope="count"),
            TimeTrackConfig(id="practice", target=3_000.0, cadence="weekly", unit="min", xp_ratio=0.5),
            MilestoneTrackConfig(
                id="levels",
                target=3.0,
                milestones=[
                    MilestoneConfig(id="a2", title="A2 certificate"),
                    MilestoneConfig(id="b1", title="B1 certificate"),
                    MilestoneConfig(id="b2", title="B2 certificate"),
                ],
            ),
        ],
        sources=GoalSources(tasks=True, focus=True, manual=True),
    ),
}

DEFAULT_GOAL_SEEDS: dict[str, float] = {
    "dream-car": 4_100_000.0,
    "emergency-fund": 3_500_000.0,
    "fitness": 92.0,
    "language": 34.0,
}


def list_seed_definitions() -> list[GoalDefinition]:
    return list(DEFAULT_GOAL_DEFINITIONS.values())


def seed_events(timestamp: datetime) -> list[ManualUpdateEvent]:
    return [
        ManualUpdateEvent(goal_id=goal_id, timestamp=timestamp, value=value, note="seed")
        for goal_id, value in DEFAULT_GOAL_SEEDS.items()
    ]
