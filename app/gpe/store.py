"""Persistence contract for the engine plus the default in-memory store.

The engine is the only writer. Ledgers, snapshot histories and event logs
are append-only and trimmed to their newest `max_entries` on append: per
(goal, track) for ledgers, per goal for the rest.
"""

from __future__ import annotations

from typing import Protocol

from app.gpe.events import GoalEvent
from app.gpe.models import (
    Contribution,
    GoalDefinition,
    GoalProgressRecord,
    GoalProgressSnapshot,
)


class GoalStore(Protocol):
    def upsert_definition(self, definition: GoalDefinition) -> None: ...

    def get_definition(self, goal_id: str) -> GoalDefinition | None: ...

    def list_definitions(self) -> list[GoalDefinition]: ...

    def get_contributions(self, goal_id: str, track_id: str) -> list[Contribution]: ...

    def append_contribution(
        self,
        goal_id: str,
        track_id: str,
        contribution: Contribution,
        max_entries: int,
    ) -> None: ...

    def persist_record(self, record: GoalProgressRecord) -> None: ...

    def get_record(self, goal_id: str) -> GoalProgressRecord | None: ...

    def list_records(self) -> list[GoalProgressRecord]: ...

    def append_snapshot(self, snapshot: GoalProgressSnapshot, max_entries: int) -> None: ...

    def list_snapshots(self, goal_id: str) -> list[GoalProgressSnapshot]: ...

    def append_event(self, event: GoalEvent, max_entries: int) -> None: ...

    def list_events(self, goal_id: str) -> list[GoalEvent]: ...


class InMemoryGoalStore:
    """Keyed maps owned by one engine instance."""

    def __init__(self) -> None:
        self._definitions: dict[str, GoalDefinition] = {}
        self._contributions: dict[tuple[str, str], list[Contribution]] = {}
        self._records: dict[str, GoalProgressRecord] = {}
        self._snapshots: dict[str, list[GoalProgressSnapshot]] = {}
        self._events: dict[str, list[GoalEvent]] = {}

    def upsert_definition(self, definition: GoalDefinition) -> None:
        self._definitions[definition.id] = definition

    def get_definition(self, goal_id: str) -> GoalDefinition | None:
        return self._definitions.get(goal_id)

    def list_definitions(self) -> list[GoalDefinition]:
        return list(self._definitions.values())

    def get_contributions(self, goal_id: str, track_id: str) -> list[Contribution]:
        return list(self._contributions.get((goal_id, track_id), []))

    def append_contribution(
        self,
        goal_id: str,
        track_id: str,
        contribution: Contribution,
        max_entries: int,
    ) -> None:
        ledger = self._contributions.setdefault((goal_id, track_id), [])
        ledger.append(contribution)
        if len(ledger) > max_entries:
            del ledger[: len(ledger) - max_entries]

    def persist_record(self, record: GoalProgressRecord) -> None:
        self._records[record.goal_id] = record

    def get_record(self, goal_id: str) -> GoalProgressRecord | None:
        return self._records.get(goal_id)

    def list_records(self) -> list[GoalProgressRecord]:
        return list(self._records.values())

    def append_snapshot(self, snapshot: GoalProgressSnapshot, max_entries: int) -> None:
        history = self._snapshots.setdefault(snapshot.goal_id, [])
        history.append(snapshot)
        if len(history) > max_entries:
            del history[: len(history) - max_entries]

    def list_snapshots(self, goal_id: str) -> list[GoalProgressSnapshot]:
        return list(self._snapshots.get(goal_id, []))

    def append_event(self, event: GoalEvent, max_entries: int) -> None:
        log = self._events.setdefault(event.goal_id, [])
        log.append(event)
        if len(log) > max_entries:
            del log[: len(log) - max_entries]

    def list_events(self, goal_id: str) -> list[GoalEvent]:
        return list(self._events.get(goal_id, []))
