"""Dual write of booking events: the local store first, the external calendar second.

The local store is the source of truth. Store failures propagate to the
caller; external calendar failures are logged and swallowed so the local
write still counts as a success.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from vfd_booking.integrations.google_calendar import CalendarBridgeError
from vfd_booking.models import Event, Member
from vfd_booking.services.event_store import EventStore
from vfd_booking.services.exceptions import ServiceError

logger = structlog.get_logger(__name__)


class CalendarBridge(Protocol):
    def create_calendar_event(self, title, description, start, end, location=None) -> dict[str, Any]: ...

    def update_calendar_event(self, external_id, title, description, start, end, location=None) -> dict[str, Any]: ...

    def delete_calendar_event(self, external_id) -> None: ...


def _mirror_fields(event: Event) -> dict[str, Any]:
    return {
        "title": event.title,
        "description": event.description or "",
        "start": event.start_time,
        "end": event.end_time,
        "location": event.location_name,
    }


class EventSynchronizer:
    def __init__(self, store: EventStore, bridge: CalendarBridge | None = None) -> None:
        self.store = store
        self.bridge = bridge

    def create(self, fields: Mapping[str, Any], owner: Member) -> Event:
        event = self.store.create(fields, owner)
        if self.bridge is None:
            return event

        try:
            mirrored = self.bridge.create_calendar_event(**_mirror_fields(event))
        except CalendarBridgeError as exc:
            logger.warning("calendar_mirror_failed", action="create", event_id=str(event.id), error=exc.message)
            return event

        external_id = mirrored.get("id")
        if not external_id:
            logger.warning("calendar_mirror_failed", action="create", event_id=str(event.id), error="no id returned")
            return event

        try:
            event = self.store.attach_external_id(event.id, external_id)
        except ServiceError as exc:
            # The mirror entry now exists without a local reference to it
            logger.error(
                "calendar_mirror_orphaned",
                event_id=str(event.id),
                external_id=external_id,
                error=exc.message,
            )
            return event

        logger.info("calendar_mirror_linked", event_id=str(event.id), external_id=external_id)
        return event

    def update(self, event_id: uuid.UUID, fields: Mapping[str, Any]) -> Event:
        external_id = self.store.get(event_id).external_calendar_id
        event = self.store.update(event_id, fields)

        if self.bridge is None or not external_id:
            return event

        try:
            self.bridge.update_calendar_event(external_id, **_mirror_fields(event))
        except CalendarBridgeError as exc:
            logger.warning(
                "calendar_mirror_failed",
                action="update",
                event_id=str(event_id),
                external_id=external_id,
                error=exc.message,
            )
        return event

    def delete(self, event_id: uuid.UUID) -> None:
        external_id = self.store.get(event_id).external_calendar_id
        self.store.delete(event_id)

        if self.bridge is None or not external_id:
            return

        try:
            self.bridge.delete_calendar_event(external_id)
        except CalendarBridgeError as exc:
            logger.warning(
                "calendar_mirror_failed",
                action="delete",
                event_id=str(event_id),
                external_id=external_id,
                error=exc.message,
            )
