from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response

from vfd_booking.api.deps import DBSession, Synchronizer
from vfd_booking.api.errors import http_error_from_service
from vfd_booking.api.v1.schemas import (
    SignUpIn,
    SignUpOut,
    SignUpSheetCreate,
    SignUpSheetCreatedOut,
    SignUpSheetListOut,
    SignUpSheetOut,
    SignUpStatus,
    WithdrawIn,
)
from vfd_booking.auth.deps import CurrentMember
from vfd_booking.models import SignUpSheet
from vfd_booking.services import capacity, signup_service
from vfd_booking.services.exceptions import ServiceError

router = APIRouter(prefix="/signup-sheets", tags=["signup-sheets"])


def sheet_out(sheet: SignUpSheet) -> SignUpSheetOut:
    groups = []
    for group in sheet.groups:
        available = {p.get("name") for p in capacity.available_positions(sheet.groups, group["name"])}
        positions = [
            {
                **position,
                "open_slots": capacity.open_slots(position),
                "available": position.get("name") in available,
            }
            for position in group.get("positions", [])
        ]
        groups.append({"name": group["name"], "positions": positions})

    filled, total = capacity.slot_totals(sheet.groups)
    return SignUpSheetOut(
        id=sheet.id,
        title=sheet.title,
        status=sheet.status,
        event_date=sheet.event_date,
        start_time=sheet.start_time,
        end_time=sheet.end_time,
        sign_up_by=sheet.sign_up_by,
        point_of_contact=sheet.point_of_contact or [],
        location_id=sheet.location_id,
        push_to_calendar=sheet.push_to_calendar,
        memo=sheet.memo,
        groups=groups,
        created_by=sheet.created_by,
        calendar_event_id=sheet.calendar_event_id,
        filled_slots=filled,
        total_slots=total,
    )


@router.get("", response_model=SignUpSheetListOut)
def list_signup_sheets(db: DBSession, member: CurrentMember):
    current, past = signup_service.list_sheets(db)
    return SignUpSheetListOut(
        current=[sheet_out(s) for s in current],
        past=[sheet_out(s) for s in past],
    )


@router.get("/{sheet_id}", response_model=SignUpSheetOut)
def get_signup_sheet(sheet_id: UUID, db: DBSession, member: CurrentMember):
    try:
        return sheet_out(signup_service.get_sheet(db, sheet_id))
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("", response_model=SignUpSheetCreatedOut, status_code=201)
def create_signup_sheet(
    payload: SignUpSheetCreate,
    db: DBSession,
    sync: Synchronizer,
    member: CurrentMember,
):
    try:
        created = signup_service.create_sheet(db, sync, member, payload)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return SignUpSheetCreatedOut(
        sheet=sheet_out(created.sheet),
        announcement_created=created.announcement_created,
    )


@router.post("/{sheet_id}/signups", response_model=SignUpOut)
def sign_up_for_position(sheet_id: UUID, payload: SignUpIn, db: DBSession, member: CurrentMember):
    try:
        sheet, already_joined = signup_service.sign_up(
            db,
            member,
            sheet_id,
            payload.group,
            payload.position,
            note=payload.note,
            remind_me=payload.remind_me,
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err

    status = SignUpStatus.ALREADY_JOINED if already_joined else SignUpStatus.JOINED
    return SignUpOut(status=status, sheet=sheet_out(sheet))


@router.post("/{sheet_id}/withdraw", response_model=SignUpOut)
def withdraw_from_position(sheet_id: UUID, payload: WithdrawIn, db: DBSession, member: CurrentMember):
    try:
        sheet = signup_service.withdraw(
            db,
            member,
            sheet_id,
            payload.group,
            payload.position,
            target_member_id=payload.member_id,
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return SignUpOut(status=SignUpStatus.WITHDRAWN, sheet=sheet_out(sheet))


@router.delete("/{sheet_id}", status_code=204)
def delete_signup_sheet(sheet_id: UUID, db: DBSession, sync: Synchronizer, member: CurrentMember):
    try:
        signup_service.delete_sheet(db, sync, member, sheet_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return Response(status_code=204)
