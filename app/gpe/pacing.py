"""Pace, ETA, confidence and status helpers for the progress aggregator."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from app.gpe.calculators import clamp01, series_confidence
from app.gpe.calendar import DAY, cadence_to_days, local_date
from app.gpe.models import Contribution, GoalStatus, PaceCadence

MIN_PERIODS_REMAINING = 0.1
RATIO_EPSILON = 1e-4


def weighted_percent(pairs: Iterable[tuple[float, float]]) -> float:
    """Weighted mean of (weight, percent) pairs, clamped to [0, 1].

    A total weight of zero is treated as one, so all-zero weights yield 0.
    """
    items = list(pairs)
    total_weight = sum(w for w, _ in items) or 1.0
    return clamp01(sum(w * p for w, p in items) / total_weight)


def daily_sums(entries: Sequence[Contribution], tz: tzinfo = timezone.utc) -> list[tuple[date, float]]:
    """Contribution values summed per calendar day, oldest first."""
    buckets: dict[date, float] = {}
    for entry in entries:
        day = local_date(entry.timestamp, tz)
        buckets[day] = buckets.get(day, 0.0) + entry.value
    return sorted(buckets.items())


def build_series(
    entries: Sequence[Contribution],
    cadence: PaceCadence | str,
    tz: tzinfo = timezone.utc,
) -> list[float]:
    """Newest `cadence_days` daily-sum buckets; empty when cadence is none."""
    bucket_days = cadence_to_days(cadence)
    if bucket_days == 0 or not entries:
        return []
    return [value for _, value in daily_sums(entries, tz)[-bucket_days:]]


def compute_confidence(
    entries: Sequence[Contribution],
    cadence: PaceCadence | str,
    tz: tzinfo = timezone.utc,
) -> float:
    return series_confidence(build_series(entries, cadence, tz))


def compute_pace_actual(
    entries: Sequence[Contribution],
    cadence: PaceCadence | str,
    window_days: int,
    now: datetime,
) -> float | None:
    """Observed velocity over the trailing window, rescaled to the cadence.

    None when cadence is none; 0.0 when the window holds no contributions.
    """
    cadence_days = cadence_to_days(cadence)
    if cadence_days == 0:
        return None
    window_start = now - timedelta(days=window_days)
    in_window = [e.value for e in entries if e.timestamp >= window_start]
    if not in_window:
        return 0.0
    return (sum(in_window) / window_days) * cadence_days


def compute_pace_required(
    remaining: float,
    deadline: datetime | None,
    cadence: PaceCadence | str,
    now: datetime,
) -> float | None:
    """Velocity per cadence period needed to close `remaining` by the deadline.

    None without a deadline, past the deadline, or with cadence none.
    Periods remaining are floored at 0.1 to keep the ratio bounded.
    """
    cadence_days = cadence_to_days(cadence)
    if deadline is None or cadence_days == 0:
        return None
    if deadline <= now:
        return None
    periods = (deadline - now) / (DAY * cadence_days) if remaining > 0 else 0.0
    return remaining / max(periods, MIN_PERIODS_REMAINING)


def compute_eta(
    remaining: float,
    cadence: PaceCadence | str,
    pace_actual: float | None,
    deadline: datetime | None,
    now: datetime,
) -> datetime | None:
    """Projected completion date, or the deadline when pace is unusable."""
    cadence_days = cadence_to_days(cadence)
    if pace_actual is None or pace_actual <= 0 or cadence_days == 0:
        return deadline
    periods = remaining / pace_actual
    try:
        return now + DAY * (periods * cadence_days)
    except OverflowError:
        # Projection past datetime.max
        return deadline


def resolve_status(
    percent: float,
    pace_required: float | None,
    pace_actual: float | None,
) -> GoalStatus:
    """Pace ratio thresholds when both paces are known, else percent thresholds."""
    if pace_required is None or pace_actual is None:
        if percent >= 0.85:
            return GoalStatus.on_track
        if percent >= 0.65:
            return GoalStatus.at_risk
        return GoalStatus.behind

    if pace_actual <= 0:
        return GoalStatus.behind
    ratio = pace_actual / max(pace_required, RATIO_EPSILON)
    if ratio >= 0.95:
        return GoalStatus.on_track
    if ratio >= 0.6:
        return GoalStatus.at_risk
    return GoalStatus.behind
