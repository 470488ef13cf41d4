"""Tests for pace, ETA, confidence and status helpers."""

from __future__ import annotations

from datetime import timedelta

import pytest

from app.gpe.models import GoalStatus, PaceCadence
from app.gpe.pacing import (
    build_series,
    compute_confidence,
    compute_eta,
    compute_pace_actual,
    compute_pace_required,
    daily_sums,
    resolve_status,
    weighted_percent,
)
from tests.conftest import FIXED_NOW, days_ago, make_contribution


class TestWeightedPercent:
    def test_equal_weights(self):
        assert weighted_percent([(1.0, 0.5), (1.0, 1.0)]) == pytest.approx(0.75)

    def test_uneven_weights(self):
        assert weighted_percent([(3.0, 1.0), (1.0, 0.0)]) == pytest.approx(0.75)

    def test_empty(self):
        assert weighted_percent([]) == 0.0

    def test_zero_total_weight(self):
        assert weighted_percent([(0.0, 1.0), (0.0, 0.5)]) == 0.0


class TestPaceActual:
    def test_rescaled_to_cadence(self):
        entries = [
            make_contribution(30, days_ago(1)),
            make_contribution(30, days_ago(10)),
            make_contribution(100, days_ago(40)),  # outside the window
        ]
        assert compute_pace_actual(entries, PaceCadence.weekly, 30, FIXED_NOW) == pytest.approx(14.0)

    def test_monthly(self):
        entries = [make_contribution(60, days_ago(2))]
        assert compute_pace_actual(entries, "monthly", 30, FIXED_NOW) == pytest.approx(60.0)

    def test_empty_window_is_zero(self):
        entries = [make_contribution(50, days_ago(45))]
        assert compute_pace_actual(entries, PaceCadence.daily, 30, FIXED_NOW) == 0.0

    def test_cadence_none(self):
        entries = [make_contribution(50, days_ago(1))]
        assert compute_pace_actual(entries, PaceCadence.none, 30, FIXED_NOW) is None


class TestPaceRequired:
    def test_weekly_ten_days_out(self):
        deadline = FIXED_NOW + timedelta(days=10)
        result = compute_pace_required(50.0, deadline, PaceCadence.weekly, FIXED_NOW)
        assert result == pytest.approx(35.0)

    def test_no_deadline(self):
        assert compute_pace_required(50.0, None, PaceCadence.weekly, FIXED_NOW) is None

    def test_past_deadline(self):
        deadline = FIXED_NOW - timedelta(days=1)
        assert compute_pace_required(50.0, deadline, PaceCadence.weekly, FIXED_NOW) is None

    def test_cadence_none(self):
        deadline = FIXED_NOW + timedelta(days=10)
        assert compute_pace_required(50.0, deadline, PaceCadence.none, FIXED_NOW) is None

    def test_periods_floored(self):
        deadline = FIXED_NOW + timedelta(hours=1)
        assert compute_pace_required(10.0, deadline, PaceCadence.daily, FIXED_NOW) == pytest.approx(100.0)

    def test_nothing_remaining(self):
        deadline = FIXED_NOW + timedelta(days=30)
        assert compute_pace_required(0.0, deadline, PaceCadence.weekly, FIXED_NOW) == 0.0


class TestEta:
    def test_projects_from_pace(self):
        eta = compute_eta(20.0, PaceCadence.weekly, 10.0, None, FIXED_NOW)
        assert eta == FIXED_NOW + timedelta(days=14)

    def test_zero_pace_falls_back_to_deadline(self):
        deadline = FIXED_NOW + timedelta(days=90)
        assert compute_eta(20.0, PaceCadence.weekly, 0.0, deadline, FIXED_NOW) == deadline

    def test_unknown_pace_without_deadline(self):
        assert compute_eta(20.0, PaceCadence.weekly, None, None, FIXED_NOW) is None

    def test_cadence_none(self):
        deadline = FIXED_NOW + timedelta(days=5)
        assert compute_eta(20.0, PaceCadence.none, 3.0, deadline, FIXED_NOW) == deadline

    def test_unreachable_projection_falls_back(self):
        deadline = FIXED_NOW + timedelta(days=5)
        assert compute_eta(1e12, PaceCadence.monthly, 1e-9, deadline, FIXED_NOW) == deadline


class TestConfidenceSeries:
    def test_daily_sums_merge_same_day(self):
        entries = [
            make_contribution(2, days_ago(1)),
            make_contribution(3, days_ago(1, hours=2)),
            make_contribution(4, days_ago(0)),
        ]
        sums = daily_sums(entries)
        assert [v for _, v in sums] == [5.0, 4.0]

    def test_weekly_keeps_newest_seven_buckets(self):
        entries = [make_contribution(i + 1, days_ago(9 - i)) for i in range(9)]
        assert build_series(entries, PaceCadence.weekly) == [3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0]

    def test_daily_keeps_one_bucket(self):
        entries = [make_contribution(1, days_ago(2)), make_contribution(5, days_ago(1))]
        assert build_series(entries, PaceCadence.daily) == [5.0]

    def test_none_cadence_empty(self):
        assert build_series([make_contribution(1)], PaceCadence.none) == []

    def test_no_contributions(self):
        assert compute_confidence([], PaceCadence.weekly) == 0.4

    def test_one_contribution(self):
        assert compute_confidence([make_contribution(10)], PaceCadence.weekly) == 0.6

    def test_steady_series(self):
        entries = [make_contribution(10, days_ago(d)) for d in range(5)]
        assert compute_confidence(entries, PaceCadence.weekly) == 1.0


class TestResolveStatus:
    @pytest.mark.parametrize("percent,expected", [
        (0.9, GoalStatus.on_track),
        (0.85, GoalStatus.on_track),
        (0.7, GoalStatus.at_risk),
        (0.65, GoalStatus.at_risk),
        (0.3, GoalStatus.behind),
    ])
    def test_percent_fallback(self, percent, expected):
        assert resolve_status(percent, None, None) == expected

    def test_fallback_when_only_one_pace_known(self):
        assert resolve_status(0.9, 10.0, None) == GoalStatus.on_track

    def test_ratio_on_track(self):
        assert resolve_status(0.1, 10.0, 12.0) == GoalStatus.on_track

    def test_ratio_at_risk(self):
        assert resolve_status(0.9, 10.0, 7.0) == GoalStatus.at_risk

    def test_ratio_behind(self):
        assert resolve_status(0.9, 10.0, 5.0) == GoalStatus.behind

    def test_non_positive_actual_is_behind(self):
        assert resolve_status(1.0, 0.0, 0.0) == GoalStatus.behind
        assert resolve_status(1.0, 10.0, -3.0) == GoalStatus.behind

    def test_zero_required_uses_epsilon(self):
        assert resolve_status(0.0, 0.0, 1.0) == GoalStatus.on_track
