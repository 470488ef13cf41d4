"""Goal progress engine — ingestion pipeline and progress aggregator.

An engine owns its store, currency converter, progress bus and clock.
Every public call runs synchronously to completion: an ingested event
either lands on at least one track and triggers a full recompute, or it
is a no-op that returns the prior record.

Known limitation: unless `gpe_dedup_source_ids` is enabled, ingesting the
same event twice appends two contributions and counts the progress twice.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Callable, Iterable, assert_never
from zoneinfo import ZoneInfo

import structlog

from app.config import Settings, settings as default_settings
from app.gpe.bus import GoalProgressUpdated, ProgressBus
from app.gpe.calculators import calculate_track_state
from app.gpe.currency import CurrencyConverter, identity_converter
from app.gpe.events import (
    FinanceTransactionEvent,
    FocusSessionEvent,
    GoalEvent,
    HabitMarkedEvent,
    ManualUpdateEvent,
    TaskCompletedEvent,
)
from app.gpe.models import (
    Contribution,
    GoalDefinition,
    GoalProgressRecord,
    GoalProgressSnapshot,
    GoalSummaryMetrics,
    GoalWidgetItem,
    TrackConfig,
    TrackState,
)
from app.gpe.pacing import (
    compute_confidence,
    compute_eta,
    compute_pace_actual,
    compute_pace_required,
    resolve_status,
    weighted_percent,
)
from app.gpe.publisher import build_snapshot, rank_widget_items, summary_metrics
from app.gpe.store import GoalStore, InMemoryGoalStore

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoalProgressEngine:
    def __init__(
        self,
        store: GoalStore | None = None,
        converter: CurrencyConverter | None = None,
        bus: ProgressBus | None = None,
        clock: Callable[[], datetime] | None = None,
        config: Settings | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.config = config or default_settings
        self.store: GoalStore = store if store is not None else InMemoryGoalStore()
        self.converter: CurrencyConverter = converter or identity_converter
        self.bus = bus or ProgressBus()
        self.tz = tz or ZoneInfo(self.config.default_tz)
        self._clock = clock or _utcnow
        self._initialized = False

    def now(self) -> datetime:
        return self._clock()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def initialize(
        self,
        seed_definitions: Iterable[GoalDefinition] = (),
        seed_events: Iterable[GoalEvent] = (),
    ) -> None:
        """Register and compute seed goals, then replay seed events. Call once."""
        if self._initialized:
            raise RuntimeError("GoalProgressEngine.initialize() called twice")
        self._initialized = True

        goal_count = 0
        for definition in seed_definitions:
            self.register_goal(definition)
            self.update_goal_progress(definition.id)
            goal_count += 1

        event_count = 0
        for event in seed_events:
            self.ingest_goal_event(event)
            event_count += 1

        logger.info("gpe_initialized", goals=goal_count, events=event_count)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # -----------------------------------------------------------------------
    # Registry
    # -----------------------------------------------------------------------

    def register_goal(self, definition: GoalDefinition) -> GoalDefinition:
        """Idempotent upsert keyed by goal id."""
        self.store.upsert_definition(definition)
        logger.info("goal_registered", goal_id=definition.id, tracks=[t.id for t in definition.tracks])
        return definition

    def get_goal_definition(self, goal_id: str) -> GoalDefinition | None:
        return self.store.get_definition(goal_id)

    def list_goal_definitions(self) -> list[GoalDefinition]:
        return self.store.list_definitions()

    def get_goal_record(self, goal_id: str) -> GoalProgressRecord | None:
        return self.store.get_record(goal_id)

    def get_snapshots(self, goal_id: str) -> list[GoalProgressSnapshot]:
        return self.store.list_snapshots(goal_id)

    def get_track_state(self, goal_id: str, track_id: str) -> TrackState | None:
        definition = self.store.get_definition(goal_id)
        track = definition.find_track(track_id) if definition else None
        if track is None:
            return None
        return self._track_state(goal_id, track, self.now())

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    def ingest_goal_event(self, event: GoalEvent) -> GoalProgressRecord | None:
        """Route `event` to its tracks and recompute; unchanged record if nothing matched."""
        log = logger.bind(goal_id=event.goal_id, event_type=event.type)

        definition = self.store.get_definition(event.goal_id)
        if definition is None:
            log.info("goal_event_ignored", reason="unknown_goal")
            return self.store.get_record(event.goal_id)

        if self._is_duplicate(event):
            log.info("goal_event_ignored", reason="duplicate_source", source_id=event.source_id)
            return self.store.get_record(event.goal_id)

        if not self._dispatch(definition, event):
            log.info("goal_event_ignored", reason="no_matching_track")
            return self.store.get_record(event.goal_id)

        self.store.append_event(event, self.config.gpe_max_events_per_goal)
        log.debug("goal_event_ingested")
        return self.update_goal_progress(event.goal_id)

    def _is_duplicate(self, event: GoalEvent) -> bool:
        if not self.config.gpe_dedup_source_ids or not event.source_id:
            return False
        # Dedup window is the retained event log
        return any(e.source_id == event.source_id for e in self.store.list_events(event.goal_id))

    def _dispatch(self, definition: GoalDefinition, event: GoalEvent) -> bool:
        match event:
            case FinanceTransactionEvent():
                return self._handle_finance(definition, event)
            case TaskCompletedEvent():
                return self._handle_task(definition, event)
            case HabitMarkedEvent():
                return self._handle_habit(definition, event)
            case FocusSessionEvent():
                return self._handle_focus(definition, event)
            case ManualUpdateEvent():
                return self._handle_manual(definition, event)
            case _:
                assert_never(event)

    @staticmethod
    def _select_track(definition: GoalDefinition, track_type: str, track_id: str | None) -> TrackConfig | None:
        if track_id:
            track = definition.find_track(track_id)
            return track if track is not None and track.type == track_type else None
        return next((t for t in definition.tracks if t.type == track_type), None)

    def _append(self, goal_id: str, track: TrackConfig, contribution: Contribution) -> None:
        self.store.append_contribution(goal_id, track.id, contribution, self.config.gpe_max_contributions)

    def _handle_finance(self, definition: GoalDefinition, event: FinanceTransactionEvent) -> bool:
        track = self._select_track(definition, "money", event.track_id)
        if track is None:
            return False
        currency = track.currency or definition.currency or event.currency
        value = event.signed_amount
        if currency and event.currency and currency != event.currency:
            value = self.converter(value, event.currency, currency)
        self._append(
            event.goal_id,
            track,
            Contribution(timestamp=event.timestamp, value=value, source=event.type, ref_id=event.source_id),
        )
        return True

    def _handle_task(self, definition: GoalDefinition, event: TaskCompletedEvent) -> bool:
        handled = False
        for track in definition.tracks:
            if track.type == "tasks":
                delta = (event.duration_minutes or 0.0) if track.scope == "duration" else 1.0
                self._append(
                    event.goal_id,
                    track,
                    Contribution(timestamp=event.timestamp, value=delta, source=event.type, ref_id=event.task_id),
                )
                handled = True
            elif track.type == "milestone" and event.milestone_id:
                milestone = track.find_milestone(event.milestone_id)
                if milestone is None:
                    continue
                weight = milestone.weight if milestone.weight is not None else 1.0
                self._append(
                    event.goal_id,
                    track,
                    Contribution(
                        timestamp=event.timestamp,
                        value=weight,
                        source=event.type,
                        ref_id=event.milestone_id,
                    ),
                )
                handled = True
        return handled

    def _handle_habit(self, definition: GoalDefinition, event: HabitMarkedEvent) -> bool:
        handled = False
        for track in definition.tracks:
            if track.type == "streak":
                self._append(
                    event.goal_id,
                    track,
                    Contribution(
                        timestamp=event.timestamp,
                        value=1.0 if event.completed else 0.0,
                        source=event.type,
                        ref_id=event.habit_id,
                    ),
                )
                handled = True
            elif track.type == "time" and event.minutes:
                self._append(
                    event.goal_id,
                    track,
                    Contribution(timestamp=event.timestamp, value=event.minutes, source=event.type, ref_id=event.habit_id),
                )
                handled = True
        return handled

    def _handle_focus(self, definition: GoalDefinition, event: FocusSessionEvent) -> bool:
        track = self._select_track(definition, "time", event.track_id)
        if track is None:
            return False
        self._append(
            event.goal_id,
            track,
            Contribution(timestamp=event.timestamp, value=event.minutes, source=event.type, ref_id=event.session_id),
        )
        return True

    def _handle_manual(self, definition: GoalDefinition, event: ManualUpdateEvent) -> bool:
        track = definition.find_track(event.track_id) if event.track_id else None
        if track is None and definition.tracks:
            track = definition.tracks[0]
        if track is None:
            return False
        # Baseline over the entries that survive the trim this append triggers
        retained = max(self.config.gpe_max_contributions - 1, 0)
        previous = self._track_state(event.goal_id, track, self.now(), max_entries=retained)
        self._append(
            event.goal_id,
            track,
            Contribution(
                timestamp=event.timestamp,
                value=event.value - previous.current,
                source=event.type,
                ref_id=event.source_id,
                note=event.note,
            ),
        )
        return True

    # -----------------------------------------------------------------------
    # Aggregation
    # -----------------------------------------------------------------------

    def _track_state(
        self,
        goal_id: str,
        track: TrackConfig,
        now: datetime,
        max_entries: int | None = None,
    ) -> TrackState:
        return calculate_track_state(
            track,
            self.store.get_contributions(goal_id, track.id),
            now,
            tz=self.tz,
            max_entries=self.config.gpe_max_contributions if max_entries is None else max_entries,
        )

    def update_goal_progress(self, goal_id: str) -> GoalProgressRecord | None:
        """Recompute, persist and publish the goal's progress record."""
        definition = self.store.get_definition(goal_id)
        if definition is None:
            return None

        now = self.now()
        states = {track.id: self._track_state(goal_id, track, now) for track in definition.tracks}
        primary = states[definition.tracks[0].id] if definition.tracks else None

        current = primary.current if primary else definition.baseline
        remaining = max(0.0, definition.target - current)
        percent = weighted_percent((track.weight, states[track.id].percent) for track in definition.tracks)

        cadence = definition.cadence
        window_days = definition.pacing_window_days or self.config.gpe_default_pacing_window_days
        primary_entries = primary.contributions if primary else []

        pace_actual = compute_pace_actual(primary_entries, cadence, window_days, now) if primary else None
        pace_required = compute_pace_required(remaining, definition.deadline, cadence, now)
        eta_date = compute_eta(remaining, cadence, pace_actual, definition.deadline, now)
        confidence = compute_confidence(primary_entries, cadence, self.tz)
        status = resolve_status(percent, pace_required, pace_actual)

        record = GoalProgressRecord(
            goal_id=goal_id,
            definition=definition,
            tracks=states,
            percent=percent,
            current=current,
            remaining=remaining,
            pace_actual=pace_actual,
            pace_required=pace_required,
            pace_cadence=cadence,
            eta_date=eta_date,
            status=status,
            confidence=confidence,
            updated_at=now,
        )
        self.store.persist_record(record)

        snapshot = build_snapshot(record, now, self.tz)
        self.store.append_snapshot(snapshot, self.config.gpe_max_snapshots_per_goal)
        self.bus.publish(GoalProgressUpdated(record=record, snapshot=snapshot))

        logger.info(
            "goal_progress_updated",
            goal_id=goal_id,
            percent=round(percent, 4),
            status=status.value,
            confidence=round(confidence, 3),
        )
        return record

    # -----------------------------------------------------------------------
    # Read projections
    # -----------------------------------------------------------------------

    def get_goal_widget_items(self, limit: int | None = None) -> list[GoalWidgetItem]:
        cap = self.config.gpe_widget_limit if limit is None else limit
        return rank_widget_items(self.store.list_records(), cap)

    def get_summary_metrics(self, goal_id: str) -> GoalSummaryMetrics | None:
        record = self.store.get_record(goal_id)
        return summary_metrics(record) if record else None
