"""Pure track state functions — math only, never raises.

Every function here is a function of its arguments alone: the same config,
contributions and `now` always produce the same TrackState.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone, tzinfo
from typing import Sequence

from app.gpe.calendar import local_date, start_of_day, start_of_week
from app.gpe.models import (
    Contribution,
    MilestoneTrackConfig,
    StreakMeta,
    StreakTrackConfig,
    TrackConfig,
    TrackState,
)

MAX_CONTRIBUTIONS = 360


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def keep_recent(
    entries: Sequence[Contribution],
    max_entries: int = MAX_CONTRIBUTIONS,
) -> list[Contribution]:
    """Newest `max_entries` contributions, in ledger order."""
    if max_entries <= 0:
        return []
    if len(entries) <= max_entries:
        return list(entries)
    return list(entries[-max_entries:])


def percent_for_track(config: TrackConfig, current: float) -> float:
    """Progress fraction in [0, 1] from baseline toward target.

    Degenerate configs (target <= baseline) are binary: 1 once current
    reaches target, else 0.
    """
    span = config.target - config.baseline
    if span <= 0:
        return 1.0 if current >= config.target else 0.0
    return clamp01((current - config.baseline) / span)


def _cumulative_state(config: TrackConfig, entries: list[Contribution]) -> TrackState:
    current = config.baseline + sum(e.value for e in entries)
    return TrackState(
        config=config,
        contributions=entries,
        current=current,
        percent=percent_for_track(config, current),
    )


def _milestone_state(config: MilestoneTrackConfig, entries: list[Contribution]) -> TrackState:
    current = config.baseline
    completed: list[str] = []
    for entry in entries:
        if entry.value <= 0:
            continue
        current += entry.value
        if entry.ref_id and entry.ref_id not in completed:
            completed.append(entry.ref_id)
    return TrackState(
        config=config,
        contributions=entries,
        current=current,
        percent=percent_for_track(config, current),
        completed_milestones=completed,
    )


def streak_meta(
    entries: Sequence[Contribution],
    grace_days: int,
    tz: tzinfo = timezone.utc,
) -> StreakMeta:
    """Walk contributions chronologically, one entry per calendar day.

    A positive day extends the running streak. A non-positive day is
    forgiven while grace remains; once grace is exhausted the streak and
    the grace counter both reset. Days without any entry are not misses.
    """
    ordered = sorted(entries, key=lambda e: e.timestamp)
    seen_days: set[date] = set()
    current = 0
    best = 0
    grace_used = 0
    last_completion: datetime | None = None

    for entry in ordered:
        day = local_date(entry.timestamp, tz)
        if day in seen_days:
            continue
        seen_days.add(day)

        if entry.value > 0:
            current += 1
            best = max(best, current)
            last_completion = entry.timestamp
            continue

        if grace_used < grace_days:
            grace_used += 1
            continue

        current = 0
        grace_used = 0

    return StreakMeta(
        current=current,
        best=best,
        grace_used=grace_used,
        last_completion=last_completion,
    )


def _streak_state(
    config: StreakTrackConfig,
    entries: list[Contribution],
    now: datetime,
    tz: tzinfo,
) -> TrackState:
    if config.cadence == "weekly":
        window_start = start_of_week(now, tz)
    else:
        window_start = start_of_day(now, tz)
    in_window = sum(e.value for e in entries if e.timestamp >= window_start)
    current = config.baseline + in_window
    return TrackState(
        config=config,
        contributions=entries,
        current=current,
        percent=percent_for_track(config, current),
        streak=streak_meta(entries, config.grace_days, tz),
    )


def calculate_track_state(
    config: TrackConfig,
    contributions: Sequence[Contribution],
    now: datetime,
    tz: tzinfo = timezone.utc,
    max_entries: int = MAX_CONTRIBUTIONS,
) -> TrackState:
    """Derive a track's current value and percent from its ledger."""
    entries = keep_recent(contributions, max_entries)
    if config.type == "milestone":
        return _milestone_state(config, entries)
    if config.type == "streak":
        return _streak_state(config, entries, now, tz)
    # money, time and tasks all accumulate from baseline
    return _cumulative_state(config, entries)


def series_confidence(values: Sequence[float]) -> float:
    """Forecast confidence in [0, 1] from the inverse coefficient of variation.

    - no values: 0.4
    - one value: 0.6
    - zero mean: 0.4
    """
    if not values:
        return 0.4
    if len(values) == 1:
        return 0.6
    mean = sum(values) / len(values)
    if mean == 0.0:
        return 0.4
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    cov = math.sqrt(variance) / abs(mean)
    return clamp01(1.0 - min(cov, 1.0))
