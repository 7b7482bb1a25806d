from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vfd_booking.models import Event, Location, Member
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import NotFoundError, StoreError, ValidationError

logger = structlog.get_logger(__name__)

WRITABLE_FIELDS = frozenset(
    {"title", "description", "start_time", "end_time", "location_id", "is_public"}
)


def _validate_times(start: datetime | None, end: datetime | None) -> None:
    for value in (start, end):
        if value is None:
            raise ValidationError(ErrorCode.EVENT_INVALID.value, "start_time and end_time are required")
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValidationError(ErrorCode.EVENT_INVALID.value, "datetime must be timezone-aware")
    if end <= start:
        raise ValidationError(ErrorCode.EVENT_INVALID.value, "end_time must be after start_time")


class EventStore:
    """Row-level CRUD over ``events``. Every call commits; nothing is retried here."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("event_store_failed", action=action, error=str(exc))
            raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to {action} event: {exc}") from exc

    def _clean(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        data = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise ValidationError(ErrorCode.EVENT_INVALID.value, "title is required")
            data["title"] = title
        location_id = data.get("location_id")
        if location_id is not None and self.db.get(Location, location_id) is None:
            raise NotFoundError(ErrorCode.LOCATION_NOT_FOUND.value, "location not found")
        return data

    def get(self, event_id: uuid.UUID) -> Event:
        try:
            event = self.db.get(Event, event_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to fetch event: {exc}") from exc
        if event is None:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
        return event

    def list(self) -> list[Event]:
        stmt = select(Event).order_by(Event.start_time.asc(), Event.created_at.asc())
        try:
            return list(self.db.scalars(stmt).unique().all())
        except SQLAlchemyError as exc:
            raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to fetch events: {exc}") from exc

    def create(self, fields: Mapping[str, Any], owner: Member) -> Event:
        data = self._clean(fields)
        if "title" not in data:
            raise ValidationError(ErrorCode.EVENT_INVALID.value, "title is required")
        _validate_times(data.get("start_time"), data.get("end_time"))

        event = Event(created_by=owner.id, **data)
        self.db.add(event)
        self._commit("create")
        self.db.refresh(event)
        logger.info("event_created", event_id=str(event.id), owner_id=str(owner.id))
        return event

    def update(self, event_id: uuid.UUID, fields: Mapping[str, Any]) -> Event:
        event = self.get(event_id)
        data = self._clean(fields)
        _validate_times(
            data.get("start_time", event.start_time),
            data.get("end_time", event.end_time),
        )

        for key, value in data.items():
            setattr(event, key, value)
        self.db.add(event)
        self._commit("update")
        self.db.refresh(event)
        logger.info("event_updated", event_id=str(event.id), fields=sorted(data))
        return event

    def attach_external_id(self, event_id: uuid.UUID, external_id: str | None) -> Event:
        event = self.get(event_id)
        event.external_calendar_id = external_id
        self.db.add(event)
        self._commit("update")
        return event

    def delete(self, event_id: uuid.UUID) -> None:
        event = self.get(event_id)
        self.db.delete(event)
        self._commit("delete")
        logger.info("event_deleted", event_id=str(event_id))

    def list_locations(self) -> list[Location]:
        try:
            return list(self.db.scalars(select(Location).order_by(Location.name.asc())).all())
        except SQLAlchemyError as exc:
            raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to fetch locations: {exc}") from exc
