from __future__ import annotations

from functools import lru_cache

import structlog

from vfd_booking.core.config import Settings, settings
from vfd_booking.integrations.google_calendar import (
    GoogleCalendarBridge,
    GoogleCalendarConfig,
    MemoryTokenCache,
    RedisTokenCache,
    TokenCache,
)
from vfd_booking.redis_client import get_redis
from vfd_booking.integrations.notifications import CalendarUpdateNotifier, RedisChannelPublisher

logger = structlog.get_logger(__name__)


def create_token_cache(kind: str | None = None) -> TokenCache | None:
    selected = (kind or settings.calendar_token_cache).strip().lower()
    if selected == "memory":
        return MemoryTokenCache()
    if selected == "redis":
        return RedisTokenCache(get_redis())
    if selected == "none":
        return None
    raise ValueError(f"unsupported calendar token cache: {selected}")


@lru_cache(maxsize=1)
def get_notifier() -> CalendarUpdateNotifier:
    notifier = CalendarUpdateNotifier()
    if settings.calendar_updates_publish:
        notifier.subscribe(RedisChannelPublisher(get_redis()))
    return notifier


def create_bridge(source: Settings = settings) -> GoogleCalendarBridge | None:
    """Build the calendar mirror, or ``None`` when mirroring is switched off.

    Raises ``ConfigurationError`` at startup when mirroring is on but the
    service account is incomplete.
    """
    if not source.google_calendar_enabled:
        logger.info("calendar_mirror_disabled")
        return None
    config = GoogleCalendarConfig.from_settings(source)
    return GoogleCalendarBridge(
        config,
        token_cache=create_token_cache(source.calendar_token_cache),
        notifier=get_notifier(),
    )


@lru_cache(maxsize=1)
def get_bridge() -> GoogleCalendarBridge | None:
    return create_bridge()
