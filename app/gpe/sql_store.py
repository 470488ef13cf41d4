"""SQL-backed GoalStore — SQLAlchemy Core, one JSON payload column per row.

Tables:
  gpe_goal_definitions (goal_id PK, payload)
  gpe_track_contributions (id PK, goal_id, track_id, payload)
  gpe_goal_records (goal_id PK, payload)
  gpe_goal_snapshots (id PK, goal_id, date_key, payload)
  gpe_goal_events (id PK, goal_id, payload)

Rows are ordered by their autoincrement id, which is append order.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine

from app.gpe.events import GoalEvent, parse_event_json
from app.gpe.models import (
    Contribution,
    GoalDefinition,
    GoalProgressRecord,
    GoalProgressSnapshot,
)

metadata = MetaData()

definitions_table = Table(
    "gpe_goal_definitions",
    metadata,
    Column("goal_id", String(128), primary_key=True),
    Column("payload", Text, nullable=False),
)

contributions_table = Table(
    "gpe_track_contributions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("goal_id", String(128), nullable=False),
    Column("track_id", String(128), nullable=False),
    Column("payload", Text, nullable=False),
    Index("ix_gpe_track_contributions_goal_track", "goal_id", "track_id"),
)

records_table = Table(
    "gpe_goal_records",
    metadata,
    Column("goal_id", String(128), primary_key=True),
    Column("payload", Text, nullable=False),
)

snapshots_table = Table(
    "gpe_goal_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("goal_id", String(128), nullable=False, index=True),
    Column("date_key", String(10), nullable=False),
    Column("payload", Text, nullable=False),
)

events_table = Table(
    "gpe_goal_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("goal_id", String(128), nullable=False, index=True),
    Column("payload", Text, nullable=False),
)


def _trim(conn: Connection, table: Table, max_entries: int, *criteria) -> None:
    """Delete all but the newest `max_entries` rows matching `criteria`."""
    newest = select(table.c.id).where(*criteria).order_by(table.c.id.desc()).limit(max_entries)
    conn.execute(delete(table).where(*criteria, table.c.id.not_in(newest)))


class SqlGoalStore:
    def __init__(self, engine: Engine, create_tables: bool = True) -> None:
        self._engine = engine
        if create_tables:
            metadata.create_all(engine)

    # -- definitions -------------------------------------------------------

    def upsert_definition(self, definition: GoalDefinition) -> None:
        t = definitions_table
        with self._engine.begin() as conn:
            conn.execute(delete(t).where(t.c.goal_id == definition.id))
            conn.execute(insert(t).values(goal_id=definition.id, payload=definition.model_dump_json()))

    def get_definition(self, goal_id: str) -> GoalDefinition | None:
        t = definitions_table
        with self._engine.connect() as conn:
            payload = conn.execute(select(t.c.payload).where(t.c.goal_id == goal_id)).scalar_one_or_none()
        return GoalDefinition.model_validate_json(payload) if payload is not None else None

    def list_definitions(self) -> list[GoalDefinition]:
        t = definitions_table
        with self._engine.connect() as conn:
            rows = conn.execute(select(t.c.payload).order_by(t.c.goal_id)).scalars().all()
        return [GoalDefinition.model_validate_json(p) for p in rows]

    # -- ledger ------------------------------------------------------------

    def get_contributions(self, goal_id: str, track_id: str) -> list[Contribution]:
        t = contributions_table
        stmt = (
            select(t.c.payload)
            .where(t.c.goal_id == goal_id, t.c.track_id == track_id)
            .order_by(t.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).scalars().all()
        return [Contribution.model_validate_json(p) for p in rows]

    def append_contribution(
        self,
        goal_id: str,
        track_id: str,
        contribution: Contribution,
        max_entries: int,
    ) -> None:
        t = contributions_table
        with self._engine.begin() as conn:
            conn.execute(
                insert(t).values(goal_id=goal_id, track_id=track_id, payload=contribution.model_dump_json())
            )
            _trim(conn, t, max_entries, t.c.goal_id == goal_id, t.c.track_id == track_id)

    # -- records & snapshots -----------------------------------------------

    def persist_record(self, record: GoalProgressRecord) -> None:
        t = records_table
        with self._engine.begin() as conn:
            conn.execute(delete(t).where(t.c.goal_id == record.goal_id))
            conn.execute(insert(t).values(goal_id=record.goal_id, payload=record.model_dump_json()))

    def get_record(self, goal_id: str) -> GoalProgressRecord | None:
        t = records_table
        with self._engine.connect() as conn:
            payload = conn.execute(select(t.c.payload).where(t.c.goal_id == goal_id)).scalar_one_or_none()
        return GoalProgressRecord.model_validate_json(payload) if payload is not None else None

    def list_records(self) -> list[GoalProgressRecord]:
        t = records_table
        with self._engine.connect() as conn:
            rows = conn.execute(select(t.c.payload).order_by(t.c.goal_id)).scalars().all()
        return [GoalProgressRecord.model_validate_json(p) for p in rows]

    def append_snapshot(self, snapshot: GoalProgressSnapshot, max_entries: int) -> None:
        t = snapshots_table
        with self._engine.begin() as conn:
            conn.execute(
                insert(t).values(
                    goal_id=snapshot.goal_id,
                    date_key=snapshot.date,
                    payload=snapshot.model_dump_json(),
                )
            )
            _trim(conn, t, max_entries, t.c.goal_id == snapshot.goal_id)

    def list_snapshots(self, goal_id: str) -> list[GoalProgressSnapshot]:
        t = snapshots_table
        with self._engine.connect() as conn:
            rows = conn.execute(select(t.c.payload).where(t.c.goal_id == goal_id).order_by(t.c.id)).scalars().all()
        return [GoalProgressSnapshot.model_validate_json(p) for p in rows]

    # -- event log ---------------------------------------------------------

    def append_event(self, event: GoalEvent, max_entries: int) -> None:
        t = events_table
        with self._engine.begin() as conn:
            conn.execute(insert(t).values(goal_id=event.goal_id, payload=event.model_dump_json()))
            _trim(conn, t, max_entries, t.c.goal_id == event.goal_id)

    def list_events(self, goal_id: str) -> list[GoalEvent]:
        t = events_table
        with self._engine.connect() as conn:
            rows = conn.execute(select(t.c.payload).where(t.c.goal_id == goal_id).order_by(t.c.id)).scalars().all()
        return [parse_event_json(p) for p in rows]
