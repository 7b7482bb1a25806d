from __future__ import annotations

import html
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vfd_booking.api.v1.schemas.signup_sheets import SignUpSheetCreate
from vfd_booking.auth.permissions import Permission, can_manage, require_manage, require_permission
from vfd_booking.core.dates import (
    combine_date_and_time,
    format_display_date,
    format_display_datetime,
    format_display_time,
    start_of_day,
)
from vfd_booking.models import Announcement, Event, Location, Member, SignUpSheet
from vfd_booking.models.signup_sheet import SheetStatus
from vfd_booking.services import capacity
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.event_sync import EventSynchronizer
from vfd_booking.services.exceptions import (
    CapacityError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StoreError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Conditional-write attempts before a contended sign-up is reported back
MAX_WRITE_ATTEMPTS = 5


@dataclass
class SheetCreated:
    sheet: SignUpSheet
    event: Event
    announcement_created: bool | None = None


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def get_sheet(db: Session, sheet_id: uuid.UUID, *, for_update: bool = False) -> SignUpSheet:
    stmt = select(SignUpSheet).where(SignUpSheet.id == sheet_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    try:
        sheet = db.scalar(stmt)
    except SQLAlchemyError as exc:
        raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to fetch sign-up sheet: {exc}") from exc
    if sheet is None:
        raise NotFoundError(ErrorCode.SIGNUP_SHEET_NOT_FOUND.value, "sign-up sheet not found")
    return sheet


def list_sheets(db: Session, now: datetime | None = None) -> tuple[list[SignUpSheet], list[SignUpSheet]]:
    """Split sheets into ``(current, past)`` around their sign-up-by deadline."""
    now = _now(now)
    try:
        sheets = db.scalars(select(SignUpSheet).order_by(SignUpSheet.event_date.asc())).all()
    except SQLAlchemyError as exc:
        raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to fetch sign-up sheets: {exc}") from exc
    current = [s for s in sheets if s.sign_up_by >= now]
    past = [s for s in sheets if s.sign_up_by < now]
    past.reverse()
    return current, past


def build_announcement(
    title: str,
    start: datetime,
    end: datetime,
    sign_up_by: datetime,
    location_name: str | None = None,
    memo: str | None = None,
) -> tuple[str, str]:
    location_text = f" at {html.escape(location_name)}" if location_name else ""
    parts = [
        "<p><strong>A new sign-up sheet has been created!</strong></p>",
        f"<p><strong>Event:</strong> {html.escape(title)}</p>",
        f"<p><strong>Date:</strong> {format_display_datetime(start)} - "
        f"{format_display_time(end)}{location_text}</p>",
        f"<p><strong>Sign up by:</strong> {format_display_date(sign_up_by)}</p>",
    ]
    if memo:
        parts.append(f"<p><strong>Additional information:</strong> {html.escape(memo)}</p>")
    parts.append('<p class="mt-4"><a href="#signup-sheets">View &amp; Sign Up</a></p>')
    return f"New Sign-Up Sheet: {title}", "".join(parts)


def create_sheet(
    db: Session,
    sync: EventSynchronizer,
    member: Member,
    payload: SignUpSheetCreate,
) -> SheetCreated:
    require_permission(member, Permission.CREATE_SIGNUP_SHEET)

    if payload.create_announcement and payload.announcement_expires_at is None:
        raise ValidationError(
            ErrorCode.SIGNUP_SHEET_INVALID.value,
            "Please select an expiration date for the announcement",
        )

    groups = capacity.normalize_groups([g.model_dump(by_alias=True) for g in payload.groups])

    try:
        start = combine_date_and_time(payload.event_date, payload.start_time)
        end = combine_date_and_time(payload.event_date, payload.end_time)
    except ValueError as exc:
        raise ValidationError(ErrorCode.SIGNUP_SHEET_INVALID.value, str(exc)) from exc
    if end <= start:
        raise ValidationError(ErrorCode.SIGNUP_SHEET_INVALID.value, "end time must be after start time")
    sign_up_by = start_of_day(payload.sign_up_by)

    location_name = None
    if payload.location_id is not None:
        location = db.get(Location, payload.location_id)
        if location is None:
            raise NotFoundError(ErrorCode.LOCATION_NOT_FOUND.value, "location not found")
        location_name = location.name

    event = sync.create(
        {
            "title": payload.title,
            "description": payload.memo or "",
            "location_id": payload.location_id,
            "start_time": start,
            "end_time": end,
            "is_public": True,
        },
        member,
    )

    sheet = SignUpSheet(
        title=payload.title.strip(),
        status=payload.status,
        event_date=start,
        start_time=start,
        end_time=end,
        sign_up_by=sign_up_by,
        point_of_contact=[str(p) for p in payload.point_of_contact],
        location_id=payload.location_id,
        push_to_calendar=payload.push_to_calendar,
        memo=payload.memo,
        groups=groups,
        created_by=member.id,
        calendar_event_id=event.id,
    )
    db.add(sheet)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("signup_sheet_create_failed", event_id=str(event.id), error=str(exc))
        # Drop the companion event so it does not outlive the failed sheet
        try:
            sync.delete(event.id)
        except ServiceError as cleanup_exc:
            logger.error("signup_sheet_event_cleanup_failed", event_id=str(event.id), error=cleanup_exc.message)
        raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to create sign-up sheet: {exc}") from exc

    logger.info("signup_sheet_created", sheet_id=str(sheet.id), event_id=str(event.id))
    result = SheetCreated(sheet=sheet, event=event)

    if payload.create_announcement:
        title, content = build_announcement(
            sheet.title, start, end, sign_up_by, location_name=location_name, memo=payload.memo
        )
        db.add(
            Announcement(
                title=title,
                content=content,
                expires_at=payload.announcement_expires_at,
                user_id=member.id,
                created_by=member.email,
            )
        )
        try:
            db.commit()
            result.announcement_created = True
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("signup_announcement_failed", sheet_id=str(sheet.id), error=str(exc))
            result.announcement_created = False

    return result


def _ensure_accepting(sheet: SignUpSheet, now: datetime) -> None:
    if sheet.status == SheetStatus.OFFLINE:
        raise ConflictError(ErrorCode.SIGNUP_CLOSED.value, "this sign-up sheet is offline")
    if sheet.sign_up_by < now:
        raise ConflictError(ErrorCode.SIGNUP_CLOSED.value, "the sign-up deadline has passed")


def _write_groups(
    db: Session,
    sheet_id: uuid.UUID,
    mutate: Callable[[SignUpSheet], list[dict[str, Any]] | None],
) -> tuple[SignUpSheet, bool]:
    """Read-check-write of ``groups`` guarded by the sheet's version column.

    ``mutate`` sees a freshly loaded sheet and returns the new groups, or
    ``None`` when nothing needs writing. A concurrent writer bumping the
    version makes the UPDATE match no row; the cycle then restarts on the
    newer data so every check runs against what is actually stored.
    """
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        sheet = get_sheet(db, sheet_id, for_update=True)
        try:
            groups = mutate(sheet)
        except ServiceError:
            db.rollback()
            raise
        if groups is None:
            db.rollback()
            return sheet, False

        sheet.groups = groups
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info("signup_write_contended", sheet_id=str(sheet_id), attempt=attempt)
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to update sign-up sheet: {exc}") from exc
        return sheet, True

    raise ConflictError(
        ErrorCode.SIGNUP_CONTENDED.value, "the sheet is busy right now, please try again"
    )


def sign_up(
    db: Session,
    member: Member,
    sheet_id: uuid.UUID,
    group_name: str,
    position_name: str,
    note: str | None = None,
    remind_me: bool = False,
    now: datetime | None = None,
) -> tuple[SignUpSheet, bool]:
    """Add ``member`` to a position. Returns ``(sheet, already_joined)``."""
    require_permission(member, Permission.SIGN_UP)
    now = _now(now)
    member_id = str(member.id)

    def _append(sheet: SignUpSheet) -> list[dict[str, Any]] | None:
        _ensure_accepting(sheet, now)
        gi, pi = capacity.find_position(sheet.groups, group_name, position_name)
        position = sheet.groups[gi]["positions"][pi]
        if capacity.is_signed_up(position, member_id):
            return None
        try:
            return capacity.append_member(sheet.groups, gi, pi, member_id, note=note, remind_me=remind_me)
        except CapacityError:
            logger.info(
                "signup_capacity_rejected",
                sheet_id=str(sheet_id),
                group=group_name,
                position=position_name,
                member_id=member_id,
            )
            raise

    sheet, written = _write_groups(db, sheet_id, _append)
    if written:
        logger.info(
            "signup_recorded",
            sheet_id=str(sheet_id),
            group=group_name,
            position=position_name,
            member_id=member_id,
        )
    return sheet, not written


def withdraw(
    db: Session,
    member: Member,
    sheet_id: uuid.UUID,
    group_name: str,
    position_name: str,
    target_member_id: uuid.UUID | None = None,
) -> SignUpSheet:
    """Remove a sign-up. Members withdraw themselves; sheet managers may remove anyone."""
    target = str(target_member_id or member.id)

    def _remove(sheet: SignUpSheet) -> list[dict[str, Any]]:
        if target != str(member.id) and not can_manage(
            member, sheet.created_by, Permission.MANAGE_ANY_SIGNUP_SHEET
        ):
            raise PermissionDeniedError(
                ErrorCode.PERMISSION_DENIED.value, "only the sheet owner or an admin can remove others"
            )
        gi, pi = capacity.find_position(sheet.groups, group_name, position_name)
        return capacity.remove_member(sheet.groups, gi, pi, target)

    sheet, _ = _write_groups(db, sheet_id, _remove)
    logger.info("signup_withdrawn", sheet_id=str(sheet_id), member_id=target)
    return sheet


def delete_sheet(db: Session, sync: EventSynchronizer, member: Member, sheet_id: uuid.UUID) -> None:
    sheet = get_sheet(db, sheet_id)
    require_manage(member, sheet.created_by, Permission.MANAGE_ANY_SIGNUP_SHEET)

    if sheet.calendar_event_id is not None:
        try:
            sync.delete(sheet.calendar_event_id)
        except NotFoundError:
            logger.info("signup_sheet_event_already_gone", sheet_id=str(sheet_id))
        except ServiceError as exc:
            logger.error(
                "signup_sheet_event_delete_failed",
                sheet_id=str(sheet_id),
                event_id=str(sheet.calendar_event_id),
                error=exc.message,
            )
            raise ConflictError(
                ErrorCode.CALENDAR_EVENT_DELETE_FAILED.value,
                f"Failed to delete calendar event: {exc.message}",
            ) from exc

    sheet = get_sheet(db, sheet_id)
    db.delete(sheet)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(ErrorCode.STORE_FAILURE.value, f"failed to delete sign-up sheet: {exc}") from exc
    logger.info("signup_sheet_deleted", sheet_id=str(sheet_id))
