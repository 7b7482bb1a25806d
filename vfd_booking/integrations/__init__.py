from vfd_booking.integrations.google_calendar import (
    CalendarBridgeError,
    GoogleCalendarBridge,
    GoogleCalendarConfig,
    MemoryTokenCache,
    RedisTokenCache,
)

__all__ = [
    "CalendarBridgeError",
    "GoogleCalendarBridge",
    "GoogleCalendarConfig",
    "MemoryTokenCache",
    "RedisTokenCache",
]
