from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response

from vfd_booking.api.deps import Store
from vfd_booking.api.errors import http_error_from_service
from vfd_booking.auth.deps import CurrentMember, OptionalMember
from vfd_booking.auth.permissions import Permission, require_permission
from vfd_booking.integrations.factory import get_bridge
from vfd_booking.integrations.google_calendar import CalendarBridgeError
from vfd_booking.services.calendar_export import ICAL_FILENAME, export_ical, google_calendar_url
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import NotFoundError, ServiceError

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _visible_events(store, member):
    events = store.list()
    if member is None:
        return [e for e in events if e.is_public]
    return events


@router.get("/export.ics")
def export_calendar(store: Store, member: OptionalMember):
    try:
        events = _visible_events(store, member)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    return Response(
        content=export_ical(events),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{ICAL_FILENAME}"'},
    )


@router.get("/google-link")
def google_link(store: Store, member: OptionalMember, event_id: UUID | None = Query(default=None)):
    try:
        if event_id is None:
            events = _visible_events(store, member)
        else:
            event = store.get(event_id)
            if member is None and not event.is_public:
                raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
            events = [event]
        return {"url": google_calendar_url(events)}
    except ServiceError as err:
        raise http_error_from_service(err) from err


def _require_bridge():
    bridge = get_bridge()
    if bridge is None:
        raise HTTPException(status_code=503, detail="calendar mirror is not configured")
    return bridge


@router.get("/mirror")
def list_mirrored_events(member: CurrentMember):
    try:
        require_permission(member, Permission.MANAGE_ANY_EVENT)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    bridge = _require_bridge()
    try:
        return {"items": bridge.list_calendar_events()}
    except CalendarBridgeError as err:
        raise HTTPException(status_code=502, detail=err.message) from err


@router.get("/mirror/{external_id}")
def get_mirrored_event(external_id: str, member: CurrentMember):
    try:
        require_permission(member, Permission.MANAGE_ANY_EVENT)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    bridge = _require_bridge()
    try:
        return bridge.get_calendar_event(external_id)
    except CalendarBridgeError as err:
        status = 404 if err.status_code == 404 else 502
        raise HTTPException(status_code=status, detail=err.message) from err
