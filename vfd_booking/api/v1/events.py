from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response

from vfd_booking.api.deps import Store, Synchronizer
from vfd_booking.api.errors import http_error_from_service
from vfd_booking.api.v1.schemas import EventCreate, EventOut, EventUpdate, LocationOut
from vfd_booking.auth.deps import CurrentMember, OptionalMember
from vfd_booking.auth.permissions import Permission, require_manage, require_permission
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import NotFoundError, ServiceError

router = APIRouter(tags=["events"])


@router.get("/events", response_model=list[EventOut])
def list_events(store: Store, member: OptionalMember):
    try:
        events = store.list()
    except ServiceError as err:
        raise http_error_from_service(err) from err
    if member is None:
        events = [e for e in events if e.is_public]
    return events


@router.get("/events/{event_id}", response_model=EventOut)
def get_event(event_id: UUID, store: Store, member: OptionalMember):
    try:
        event = store.get(event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    if member is None and not event.is_public:
        raise http_error_from_service(
            NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
        )
    return event


@router.post("/events", response_model=EventOut, status_code=201)
def create_event(payload: EventCreate, sync: Synchronizer, member: CurrentMember):
    try:
        require_permission(member, Permission.CREATE_EVENT)
        return sync.create(payload.model_dump(), member)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.patch("/events/{event_id}", response_model=EventOut)
def update_event(event_id: UUID, payload: EventUpdate, sync: Synchronizer, member: CurrentMember):
    try:
        event = sync.store.get(event_id)
        require_manage(member, event.created_by, Permission.MANAGE_ANY_EVENT)
        return sync.update(event_id, payload.model_dump(exclude_unset=True))
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.delete("/events/{event_id}", status_code=204)
def delete_event(event_id: UUID, sync: Synchronizer, member: CurrentMember):
    try:
        event = sync.store.get(event_id)
        require_manage(member, event.created_by, Permission.MANAGE_ANY_EVENT)
        sync.delete(event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return Response(status_code=204)


@router.get("/locations", response_model=list[LocationOut], tags=["locations"])
def list_locations(store: Store):
    try:
        return store.list_locations()
    except ServiceError as err:
        raise http_error_from_service(err) from err
