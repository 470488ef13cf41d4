"""In-process publish/subscribe boundary between the engine and its consumers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import structlog

from app.gpe.models import GoalProgressRecord, GoalProgressSnapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class GoalProgressUpdated:
    record: GoalProgressRecord
    snapshot: GoalProgressSnapshot


Subscriber = Callable[[GoalProgressUpdated], None]


class ProgressBus:
    """Synchronous fan-out in subscription order.

    A subscriber that raises is logged and skipped; the remaining
    subscribers and the publisher are unaffected.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, handler: Subscriber) -> Callable[[], None]:
        """Register `handler`; returns a callable that unsubscribes it."""
        self._subscribers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Subscriber) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def publish(self, event: GoalProgressUpdated) -> int:
        """Deliver `event`; returns how many subscribers handled it cleanly."""
        delivered = 0
        for handler in list(self._subscribers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "progress_subscriber_failed",
                    goal_id=event.record.goal_id,
                    subscriber=getattr(handler, "__qualname__", repr(handler)),
                )
                continue
            delivered += 1
        return delivered
