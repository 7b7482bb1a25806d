from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import event as sa_event, func, select
from sqlalchemy.exc import SQLAlchemyError

from tests.helpers import auth_headers, make_member
from vfd_booking.api.v1.schemas import SignUpSheetCreate
from vfd_booking.db import SessionLocal
from vfd_booking.models import Announcement, Event, SignUpSheet
from vfd_booking.models.signup_sheet import SheetStatus
from vfd_booking.services import capacity, signup_service
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.event_store import EventStore
from vfd_booking.services.event_sync import EventSynchronizer
from vfd_booking.services.exceptions import (
    CapacityError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)

BEFORE_DEADLINE = datetime(2030, 2, 20, 12, 0, tzinfo=timezone.utc)
AFTER_DEADLINE = datetime(2030, 2, 26, 12, 0, tzinfo=timezone.utc)


def _payload(**overrides) -> SignUpSheetCreate:
    data = {
        "title": "Pancake Breakfast",
        "event_date": date(2030, 3, 1),
        "start_time": "8:00 AM",
        "end_time": "11:00",
        "sign_up_by": date(2030, 2, 25),
        "memo": "Aprons provided",
        "groups": [{"name": "Kitchen Crew", "positions": [{"name": "Griddle", "maxSlots": 2}]}],
    }
    data.update(overrides)
    return SignUpSheetCreate.model_validate(data)


@pytest.fixture
def sync(db_session) -> EventSynchronizer:
    return EventSynchronizer(EventStore(db_session))


@pytest.fixture
def sheet(db_session, sync, member) -> SignUpSheet:
    return signup_service.create_sheet(db_session, sync, member, _payload()).sheet


def _griddle_members(db, sheet_id) -> list[str]:
    groups = signup_service.get_sheet(db, sheet_id).groups
    return capacity.member_ids(groups)


def test_create_sheet_with_companion_event(db_session, sync, member, station):
    created = signup_service.create_sheet(db_session, sync, member, _payload(location_id=station.id))

    sheet = created.sheet
    assert sheet.start_time == datetime(2030, 3, 1, 13, 0, tzinfo=timezone.utc)
    assert sheet.end_time == datetime(2030, 3, 1, 16, 0, tzinfo=timezone.utc)
    assert sheet.sign_up_by == datetime(2030, 2, 25, 5, 0, tzinfo=timezone.utc)
    assert sheet.groups == [
        {"name": "Kitchen Crew", "positions": [{"name": "Griddle", "maxSlots": 2, "members": []}]}
    ]
    assert sheet.status == SheetStatus.ONLINE
    assert created.announcement_created is None

    companion = EventStore(db_session).get(sheet.calendar_event_id)
    assert companion.title == "Pancake Breakfast"
    assert companion.is_public is True
    assert companion.location_name == "Station 1"
    assert companion.start_time == sheet.start_time


def test_create_sheet_rejects_end_before_start(db_session, sync, member):
    with pytest.raises(ValidationError):
        signup_service.create_sheet(db_session, sync, member, _payload(end_time="7:00 AM"))
    assert db_session.scalar(select(func.count()).select_from(Event)) == 0


def test_create_sheet_with_announcement(db_session, sync, member, station):
    expires = datetime(2030, 3, 2, tzinfo=timezone.utc)
    created = signup_service.create_sheet(
        db_session,
        sync,
        member,
        _payload(location_id=station.id, create_announcement=True, announcement_expires_at=expires),
    )

    assert created.announcement_created is True
    announcement = db_session.scalar(select(Announcement))
    assert announcement.title == "New Sign-Up Sheet: Pancake Breakfast"
    assert "Mar 1, 2030 8:00 AM - 11:00 AM at Station 1" in announcement.content
    assert "<strong>Sign up by:</strong> Feb 25, 2030" in announcement.content
    assert "Aprons provided" in announcement.content
    assert announcement.expires_at == expires


def test_announcement_requires_expiry(db_session, sync, member):
    with pytest.raises(ValidationError) as exc:
        signup_service.create_sheet(db_session, sync, member, _payload(create_announcement=True))
    assert exc.value.message == "Please select an expiration date for the announcement"


def test_failed_sheet_insert_removes_companion_event(db_session, sync, member):
    def _fail_sheet_insert(session, flush_context, instances):
        if any(isinstance(obj, SignUpSheet) for obj in session.new):
            raise SQLAlchemyError("disk full")

    sa_event.listen(db_session, "before_flush", _fail_sheet_insert)
    try:
        with pytest.raises(StoreError):
            signup_service.create_sheet(db_session, sync, member, _payload())
    finally:
        sa_event.remove(db_session, "before_flush", _fail_sheet_insert)

    assert db_session.scalar(select(func.count()).select_from(Event)) == 0
    assert db_session.scalar(select(func.count()).select_from(SignUpSheet)) == 0


def test_two_sign_ups_fill_position_and_third_is_rejected(db_session, sheet):
    alice = make_member(db_session, "alice@example.com")
    bob = make_member(db_session, "bob@example.com")
    carol = make_member(db_session, "carol@example.com")

    signup_service.sign_up(db_session, alice, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)
    signup_service.sign_up(db_session, bob, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)

    with pytest.raises(CapacityError) as exc:
        signup_service.sign_up(db_session, carol, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)

    assert exc.value.code == ErrorCode.SIGNUP_POSITION_FULL.value
    assert _griddle_members(db_session, sheet.id) == [str(alice.id), str(bob.id)]


def test_stale_writer_rechecks_capacity_against_fresh_groups(db_session, sheet, monkeypatch):
    alice = make_member(db_session, "alice@example.com")
    bob = make_member(db_session, "bob@example.com")
    carol = make_member(db_session, "carol@example.com")
    signup_service.sign_up(db_session, alice, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)

    other = SessionLocal()
    lookups = []
    find_position = capacity.find_position

    def _find_with_competing_writer(groups, group_name, position_name):
        lookups.append(len(groups[0]["positions"][0]["members"]))
        if len(lookups) == 1:
            # Bob takes the last slot after Carol read the sheet but before she writes
            signup_service.sign_up(other, bob, sheet.id, group_name, position_name, now=BEFORE_DEADLINE)
        return find_position(groups, group_name, position_name)

    monkeypatch.setattr(capacity, "find_position", _find_with_competing_writer)
    try:
        with pytest.raises(CapacityError):
            signup_service.sign_up(db_session, carol, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)
    finally:
        other.close()

    # Carol's first pass saw one member; her retry saw the slot Bob took
    assert lookups[0] == 1
    assert lookups[-1] == 2
    assert _griddle_members(db_session, sheet.id) == [str(alice.id), str(bob.id)]


def test_duplicate_sign_up_is_a_no_op(db_session, sheet, member):
    _, already = signup_service.sign_up(
        db_session, member, sheet.id, "Kitchen Crew", "Griddle", note="first", now=BEFORE_DEADLINE
    )
    assert already is False

    again, already = signup_service.sign_up(
        db_session, member, sheet.id, "Kitchen Crew", "Griddle", note="second", now=BEFORE_DEADLINE
    )
    assert already is True
    members = again.groups[0]["positions"][0]["members"]
    assert members == [{"id": str(member.id), "remindMe": False, "note": "first"}]


def test_sign_up_closed_after_deadline(db_session, sheet, member):
    with pytest.raises(ConflictError) as exc:
        signup_service.sign_up(db_session, member, sheet.id, "Kitchen Crew", "Griddle", now=AFTER_DEADLINE)
    assert exc.value.code == ErrorCode.SIGNUP_CLOSED.value


def test_offline_sheet_rejects_sign_ups(db_session, sync, member):
    offline = signup_service.create_sheet(
        db_session, sync, member, _payload(status=SheetStatus.OFFLINE)
    ).sheet

    with pytest.raises(ConflictError) as exc:
        signup_service.sign_up(db_session, member, offline.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)
    assert exc.value.code == ErrorCode.SIGNUP_CLOSED.value


def test_sign_up_for_removed_position(db_session, sheet, member):
    with pytest.raises(NotFoundError) as exc:
        signup_service.sign_up(db_session, member, sheet.id, "Kitchen Crew", "Coffee", now=BEFORE_DEADLINE)
    assert exc.value.code == ErrorCode.SIGNUP_POSITION_NOT_FOUND.value


def test_withdraw_self_and_permissions(db_session, sheet, member):
    alice = make_member(db_session, "alice@example.com")
    bob = make_member(db_session, "bob@example.com")
    signup_service.sign_up(db_session, alice, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)
    signup_service.sign_up(db_session, bob, sheet.id, "Kitchen Crew", "Griddle", now=BEFORE_DEADLINE)

    with pytest.raises(PermissionDeniedError):
        signup_service.withdraw(db_session, alice, sheet.id, "Kitchen Crew", "Griddle", target_member_id=bob.id)

    signup_service.withdraw(db_session, alice, sheet.id, "Kitchen Crew", "Griddle")
    assert _griddle_members(db_session, sheet.id) == [str(bob.id)]

    # The sheet owner may clear anyone
    signup_service.withdraw(db_session, member, sheet.id, "Kitchen Crew", "Griddle", target_member_id=bob.id)
    assert _griddle_members(db_session, sheet.id) == []

    with pytest.raises(NotFoundError) as exc:
        signup_service.withdraw(db_session, bob, sheet.id, "Kitchen Crew", "Griddle")
    assert exc.value.code == ErrorCode.SIGNUP_NOT_FOUND.value


def test_list_sheets_splits_on_deadline(db_session, sync, member):
    early = signup_service.create_sheet(
        db_session, sync, member, _payload(title="Drill", event_date=date(2030, 2, 10), sign_up_by=date(2030, 2, 5))
    ).sheet
    later = signup_service.create_sheet(db_session, sync, member, _payload()).sheet

    current, past = signup_service.list_sheets(db_session, now=BEFORE_DEADLINE)

    assert [s.id for s in current] == [later.id]
    assert [s.id for s in past] == [early.id]


def test_sheet_reads_report_store_failures(db_session, sheet, monkeypatch):
    def _broken(*args, **kwargs):
        raise SQLAlchemyError("connection refused")

    monkeypatch.setattr(db_session, "scalar", _broken)
    monkeypatch.setattr(db_session, "scalars", _broken)

    with pytest.raises(StoreError) as exc:
        signup_service.get_sheet(db_session, sheet.id)
    assert exc.value.code == ErrorCode.STORE_FAILURE.value

    with pytest.raises(StoreError):
        signup_service.list_sheets(db_session)


def test_delete_sheet_removes_companion_event_first(db_session, sync, member, sheet):
    event_id = sheet.calendar_event_id

    signup_service.delete_sheet(db_session, sync, member, sheet.id)

    with pytest.raises(NotFoundError):
        EventStore(db_session).get(event_id)
    with pytest.raises(NotFoundError):
        signup_service.get_sheet(db_session, sheet.id)


def test_delete_sheet_keeps_sheet_when_event_delete_fails(db_session, member, sheet):
    class BrokenSync:
        def delete(self, event_id):
            raise StoreError(ErrorCode.STORE_FAILURE.value, "connection reset")

    with pytest.raises(ConflictError) as exc:
        signup_service.delete_sheet(db_session, BrokenSync(), member, sheet.id)

    assert exc.value.code == ErrorCode.CALENDAR_EVENT_DELETE_FAILED.value
    assert exc.value.message == "Failed to delete calendar event: connection reset"
    assert signup_service.get_sheet(db_session, sheet.id).id == sheet.id


def test_delete_sheet_when_companion_event_already_gone(db_session, sync, member, sheet):
    sync.delete(sheet.calendar_event_id)

    signup_service.delete_sheet(db_session, sync, member, sheet.id)

    with pytest.raises(NotFoundError):
        signup_service.get_sheet(db_session, sheet.id)


def test_only_owner_or_admin_deletes_sheet(db_session, sync, sheet, admin):
    stranger = make_member(db_session, "stranger@example.com")

    with pytest.raises(PermissionDeniedError):
        signup_service.delete_sheet(db_session, sync, stranger, sheet.id)

    signup_service.delete_sheet(db_session, sync, admin, sheet.id)
    assert db_session.scalar(select(func.count()).select_from(SignUpSheet)) == 0


# -- HTTP -------------------------------------------------------------------


def _create_via_api(client, email: str, **overrides):
    future = date.today() + timedelta(days=30)
    body = {
        "title": "Pancake Breakfast",
        "event_date": future.isoformat(),
        "start_time": "8:00 AM",
        "end_time": "11:00 AM",
        "sign_up_by": (future - timedelta(days=3)).isoformat(),
        "groups": [{"name": "Kitchen Crew", "positions": [{"name": "Griddle", "maxSlots": 2}]}],
    }
    body.update(overrides)
    return client.post("/v1/signup-sheets", json=body, headers=auth_headers(email))


def test_sign_up_flow_over_http(client):
    created = _create_via_api(client, "owner@example.com")
    assert created.status_code == 201
    sheet = created.json()["sheet"]
    assert sheet["groups"][0]["positions"][0]["maxSlots"] == 2
    assert sheet["total_slots"] == 2
    assert sheet["groups"][0]["positions"][0]["available"] is True

    url = f"/v1/signup-sheets/{sheet['id']}/signups"
    slot = {"group": "Kitchen Crew", "position": "Griddle", "remindMe": True}

    first = client.post(url, json=slot, headers=auth_headers("alice@example.com"))
    assert first.status_code == 200
    assert first.json()["status"] == "joined"

    repeat = client.post(url, json=slot, headers=auth_headers("alice@example.com"))
    assert repeat.json()["status"] == "already_joined"

    client.post(url, json=slot, headers=auth_headers("bob@example.com"))
    full = client.post(url, json=slot, headers=auth_headers("carol@example.com"))
    assert full.status_code == 409
    assert full.json()["detail"]["code"] == ErrorCode.SIGNUP_POSITION_FULL.value

    listing = client.get("/v1/signup-sheets", headers=auth_headers("carol@example.com"))
    assert listing.status_code == 200
    [current] = listing.json()["current"]
    assert current["filled_slots"] == 2
    position = current["groups"][0]["positions"][0]
    assert position["open_slots"] == 0
    assert position["available"] is False
    assert position["members"][0]["remindMe"] is True

    withdrawn = client.post(
        f"/v1/signup-sheets/{sheet['id']}/withdraw",
        json={"group": "Kitchen Crew", "position": "Griddle"},
        headers=auth_headers("bob@example.com"),
    )
    assert withdrawn.json()["status"] == "withdrawn"
    assert withdrawn.json()["sheet"]["filled_slots"] == 1


def test_delete_over_http(client):
    sheet_id = _create_via_api(client, "owner@example.com").json()["sheet"]["id"]

    denied = client.delete(f"/v1/signup-sheets/{sheet_id}", headers=auth_headers("other@example.com"))
    assert denied.status_code == 403

    resp = client.delete(f"/v1/signup-sheets/{sheet_id}", headers=auth_headers("owner@example.com"))
    assert resp.status_code == 204

    gone = client.get(f"/v1/signup-sheets/{sheet_id}", headers=auth_headers("owner@example.com"))
    assert gone.status_code == 404
    assert gone.json()["detail"]["code"] == ErrorCode.SIGNUP_SHEET_NOT_FOUND.value


def test_sheets_require_authentication(client):
    assert client.get("/v1/signup-sheets").status_code == 401
    assert _create_via_api(client, "owner@example.com", groups=[]).status_code == 422
