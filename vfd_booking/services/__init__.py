from vfd_booking.services.event_store import EventStore
from vfd_booking.services.event_sync import EventSynchronizer
from vfd_booking.services.signup_service import (
    create_sheet,
    delete_sheet,
    get_sheet,
    list_sheets,
    sign_up,
    withdraw,
)

__all__ = [
    "EventStore",
    "EventSynchronizer",
    "create_sheet",
    "delete_sheet",
    "get_sheet",
    "list_sheets",
    "sign_up",
    "withdraw",
]
