"""Tests for snapshot/widget projections, summary labels and the bus bridges."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.gpe.bus import GoalProgressUpdated, ProgressBus
from app.gpe.events import FinanceTransactionEvent
from app.gpe.models import GoalProgressRecord, GoalStatus, PaceCadence
from app.gpe.publisher import (
    HomeWidgetBridge,
    InsightsBridge,
    build_snapshot,
    progress_percent,
    rank_widget_items,
    summary_metrics,
    to_widget_item,
)
from tests.conftest import FIXED_NOW, make_definition


def _record(goal_id: str = "savings", percent: float = 0.5, remaining: float = 50.0, **overrides) -> GoalProgressRecord:
    definition = overrides.pop("definition", None) or make_definition(goal_id)
    data = dict(
        goal_id=goal_id,
        definition=definition,
        percent=percent,
        current=definition.target - remaining,
        remaining=remaining,
        pace_cadence=definition.cadence,
        status=GoalStatus.behind,
        confidence=0.6,
        updated_at=FIXED_NOW,
    )
    data.update(overrides)
    return GoalProgressRecord(**data)


class TestProgressPercent:
    @pytest.mark.parametrize("fraction,expected", [
        (0.0, 0),
        (0.004, 0),
        (0.005, 1),
        (0.125, 13),
        (0.5, 50),
        (0.999, 100),
        (1.0, 100),
    ])
    def test_rounds_half_up(self, fraction, expected):
        assert progress_percent(fraction) == expected


class TestSnapshot:
    def test_fields_copied(self):
        record = _record(percent=0.4, remaining=60.0, status=GoalStatus.on_track, pace_actual=3.0)
        snap = build_snapshot(record, FIXED_NOW)
        assert snap.goal_id == "savings"
        assert snap.date == "2026-03-18"
        assert snap.current_value == 40.0
        assert snap.percent_complete == 0.4
        assert snap.on_track is True
        assert snap.pace_actual == 3.0

    def test_date_uses_local_day(self):
        late = datetime(2026, 3, 18, 22, 30, tzinfo=timezone.utc)
        snap = build_snapshot(_record(), late, ZoneInfo("Asia/Tashkent"))
        assert snap.date == "2026-03-19"


class TestWidgetItems:
    def test_item_fields(self):
        record = _record(percent=0.7, remaining=30.0, eta_date=datetime(2026, 9, 1, 8, tzinfo=timezone.utc))
        item = to_widget_item(record)
        assert item.id == "savings"
        assert item.progress == 70
        assert item.current == 70.0
        assert item.target == 100.0
        assert item.unit == "USD"
        assert item.eta_label == "2026-09-01"

    def test_no_eta_label(self):
        assert to_widget_item(_record()).eta_label is None

    def test_ranking(self):
        records = [
            _record("a", percent=0.5, remaining=50.0),
            _record("b", percent=0.5, remaining=30.0),
            _record("c", percent=0.9, remaining=10.0),
        ]
        assert [i.id for i in rank_widget_items(records, 2)] == ["c", "b"]

    def test_limit_larger_than_records(self):
        assert len(rank_widget_items([_record("a"), _record("b")], 5)) == 2

    def test_zero_limit(self):
        assert rank_widget_items([_record("a")], 0) == []


class TestSummaryMetrics:
    def test_labels(self):
        record = _record(
            percent=0.4,
            remaining=60.0,
            pace_actual=12.5,
            status=GoalStatus.at_risk,
            eta_date=datetime(2026, 7, 1, tzinfo=timezone.utc),
        )
        metrics = summary_metrics(record)
        assert metrics.remaining_label == "60 USD left"
        assert metrics.pace_label == "12.5 USD / week"
        assert metrics.forecast_label == "At risk · Jul 2026"

    def test_unknown_pace_and_eta(self):
        metrics = summary_metrics(_record())
        assert metrics.pace_label == "n/a"
        assert metrics.forecast_label == "Behind · no ETA"

    def test_thousands_separator_and_unit_fallback(self):
        definition = make_definition(currency=None, unit="steps", target=2_000_000.0, cadence=PaceCadence.none)
        record = _record(definition=definition, remaining=1_500_000.0, pace_actual=250.0, pace_cadence=PaceCadence.none)
        metrics = summary_metrics(record)
        assert metrics.remaining_label == "1,500,000 steps left"
        assert metrics.pace_label == "250 steps"


def _update(record: GoalProgressRecord, now: datetime) -> GoalProgressUpdated:
    return GoalProgressUpdated(record=record, snapshot=build_snapshot(record, now))


class TestBridges:
    def test_home_widget_keeps_latest(self):
        bridge = HomeWidgetBridge()
        bridge(_update(_record(remaining=50.0), FIXED_NOW))
        bridge(_update(_record(remaining=20.0), FIXED_NOW))
        assert bridge.latest("savings").current_value == 80.0
        assert bridge.latest("other") is None

    def test_widget_state(self):
        bridge = HomeWidgetBridge()
        assert bridge.widget_state([]).has_data is False
        state = bridge.widget_state([to_widget_item(_record())])
        assert state.has_data is True
        assert state.goals[0].id == "savings"

    def test_insights_one_per_goal_per_day(self):
        bridge = InsightsBridge()
        bridge(_update(_record(remaining=90.0), FIXED_NOW - timedelta(days=1)))
        bridge(_update(_record(remaining=60.0), FIXED_NOW))
        bridge(_update(_record(remaining=50.0), FIXED_NOW + timedelta(hours=2)))
        bridge(_update(_record("other"), FIXED_NOW))

        history = bridge.snapshots("savings")
        assert [(s.date, s.current_value) for s in history] == [("2026-03-18", 50.0), ("2026-03-17", 10.0)]
        assert len(bridge.snapshots()) == 3
        assert bridge.snapshots()[0].goal_id == "other"

    def test_insights_days_capped_per_goal(self):
        bridge = InsightsBridge(max_per_goal=3)
        for offset in range(6):
            bridge(_update(_record(remaining=100.0 - offset), FIXED_NOW + timedelta(days=offset)))
        bridge(_update(_record("other"), FIXED_NOW))

        history = bridge.snapshots("savings")
        assert [s.date for s in history] == ["2026-03-23", "2026-03-22", "2026-03-21"]
        assert len(bridge.snapshots("other")) == 1

    def test_bridges_via_engine(self, engine, bridges):
        home_widget, insights = bridges
        engine.register_goal(make_definition())
        engine.ingest_goal_event(
            FinanceTransactionEvent(goal_id="savings", amount=25, currency="USD", direction="inflow", timestamp=FIXED_NOW)
        )
        assert home_widget.latest("savings").current_value == 25.0
        assert insights.snapshots("savings")[0].current_value == 25.0


class TestProgressBus:
    def test_delivery_order_and_count(self):
        bus = ProgressBus()
        seen: list[str] = []
        bus.subscribe(lambda e: seen.append("first"))
        bus.subscribe(lambda e: seen.append("second"))
        assert bus.publish(_update(_record(), FIXED_NOW)) == 2
        assert seen == ["first", "second"]

    def test_unsubscribe(self):
        bus = ProgressBus()
        seen: list[GoalProgressUpdated] = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        assert bus.publish(_update(_record(), FIXED_NOW)) == 0
        assert seen == []

    def test_failure_isolated(self):
        bus = ProgressBus()
        seen: list[GoalProgressUpdated] = []

        def broken(_event):
            raise ValueError("boom")

        bus.subscribe(broken)
        bus.subscribe(seen.append)
        assert bus.publish(_update(_record(), FIXED_NOW)) == 1
        assert len(seen) == 1
