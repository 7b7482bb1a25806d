from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import structlog
from redis import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)

CALENDAR_UPDATES_CHANNEL = "calendar:updates"


@dataclass(frozen=True)
class CalendarChange:
    action: str  # created | updated | deleted
    external_id: str
    occurred_at: str


def calendar_change(action: str, external_id: str) -> CalendarChange:
    return CalendarChange(
        action=action,
        external_id=external_id,
        occurred_at=datetime.now(timezone.utc).isoformat(),
    )


Subscriber = Callable[[CalendarChange], None]


class CalendarUpdateNotifier:
    """Fan-out of external calendar mutations to interested observers.

    Delivery is fire-and-forget: a failing subscriber is logged and skipped,
    it never fails the mutation that triggered it.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, change: CalendarChange) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception:
                logger.exception(
                    "calendar_subscriber_failed",
                    action=change.action,
                    external_id=change.external_id,
                )


class RedisChannelPublisher:
    """Forwards calendar changes to a Redis pub/sub channel so clients can refetch."""

    def __init__(self, redis: Redis, channel: str = CALENDAR_UPDATES_CHANNEL) -> None:
        self.redis = redis
        self.channel = channel

    def __call__(self, change: CalendarChange) -> None:
        try:
            self.redis.publish(self.channel, json.dumps(asdict(change)))
        except RedisError as exc:
            logger.warning("calendar_change_publish_failed", channel=self.channel, error=str(exc))
