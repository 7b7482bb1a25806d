from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from vfd_booking.db import get_db
from vfd_booking.integrations.factory import get_bridge
from vfd_booking.services.event_store import EventStore
from vfd_booking.services.event_sync import EventSynchronizer

DBSession = Annotated[Session, Depends(get_db)]


def get_event_store(db: DBSession) -> EventStore:
    return EventStore(db)


def get_synchronizer(store: Annotated[EventStore, Depends(get_event_store)]) -> EventSynchronizer:
    return EventSynchronizer(store, get_bridge())


Store = Annotated[EventStore, Depends(get_event_store)]
Synchronizer = Annotated[EventSynchronizer, Depends(get_synchronizer)]
