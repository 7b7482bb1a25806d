from __future__ import annotations

from datetime import datetime

import httpx
import pytest

from vfd_booking.integrations.google_calendar import CalendarBridgeError, GoogleCalendarBridge, GoogleCalendarConfig
from vfd_booking.models import Event
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.event_store import EventStore
from vfd_booking.services.event_sync import EventSynchronizer
from vfd_booking.services.exceptions import NotFoundError, StoreError, ValidationError


class RecordingBridge:
    def __init__(self, external_id: str = "abc123", fail_on: set[str] | None = None) -> None:
        self.external_id = external_id
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, dict]] = []

    def _record(self, action: str, **kwargs):
        self.calls.append((action, kwargs))
        if action in self.fail_on:
            raise CalendarBridgeError("Calendar usage limits exceeded.", status_code=403)

    def create_calendar_event(self, title, description, start, end, location=None):
        self._record("create", title=title, description=description, start=start, end=end, location=location)
        return {"id": self.external_id}

    def update_calendar_event(self, external_id, title, description, start, end, location=None):
        self._record("update", external_id=external_id, title=title, start=start, end=end, location=location)
        return {"id": external_id}

    def delete_calendar_event(self, external_id):
        self._record("delete", external_id=external_id)


def _pancake_breakfast(station) -> dict:
    return {
        "title": "Pancake Breakfast",
        "start_time": datetime.fromisoformat("2025-03-01T08:00:00-05:00"),
        "end_time": datetime.fromisoformat("2025-03-01T11:00:00-05:00"),
        "location_id": station.id,
        "is_public": True,
    }


def test_create_links_store_and_mirror_ids(db_session, member, station):
    bridge = RecordingBridge(external_id="abc123")
    sync = EventSynchronizer(EventStore(db_session), bridge)

    event = sync.create(_pancake_breakfast(station), member)

    assert event.id is not None
    assert event.external_calendar_id == "abc123"
    stored = db_session.get(Event, event.id, populate_existing=True)
    assert stored.external_calendar_id == "abc123"

    action, sent = bridge.calls[0]
    assert action == "create"
    assert sent["title"] == "Pancake Breakfast"
    assert sent["location"] == "Station 1"
    assert sent["start"] == datetime.fromisoformat("2025-03-01T13:00:00+00:00")


def test_create_survives_bridge_failure(db_session, member, station):
    bridge = RecordingBridge(fail_on={"create"})
    sync = EventSynchronizer(EventStore(db_session), bridge)

    event = sync.create(_pancake_breakfast(station), member)

    stored = EventStore(db_session).get(event.id)
    assert stored.title == "Pancake Breakfast"
    assert stored.external_calendar_id is None


def test_create_survives_non_json_mirror_reply(db_session, member, station, rsa_private_key_pem):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3599})
        return httpx.Response(200, text="<html>maintenance</html>", headers={"Content-Type": "text/html"})

    config = GoogleCalendarConfig(
        service_account_email="booking-sync@vfd-project.iam.gserviceaccount.com",
        private_key=rsa_private_key_pem,
        calendar_id="vfd@group.calendar.google.com",
        token_uri="https://oauth2.example.test/token",
        api_base="https://calendar.example.test/calendar/v3",
    )
    bridge = GoogleCalendarBridge(config, http=httpx.Client(transport=httpx.MockTransport(handler)))
    sync = EventSynchronizer(EventStore(db_session), bridge)

    event = sync.create(_pancake_breakfast(station), member)

    assert event.external_calendar_id is None
    stored = EventStore(db_session).get(event.id)
    assert stored.title == "Pancake Breakfast"
    assert stored.external_calendar_id is None


def test_create_without_bridge_is_local_only(db_session, member, station):
    event = EventSynchronizer(EventStore(db_session)).create(_pancake_breakfast(station), member)
    assert event.external_calendar_id is None


def test_create_returns_event_when_linking_mirror_id_fails(db_session, member, station, monkeypatch):
    store = EventStore(db_session)
    sync = EventSynchronizer(store, RecordingBridge())

    def _broken_attach(event_id, external_id):
        raise StoreError(ErrorCode.STORE_FAILURE.value, "connection reset")

    monkeypatch.setattr(store, "attach_external_id", _broken_attach)

    event = sync.create(_pancake_breakfast(station), member)
    assert event.title == "Pancake Breakfast"
    assert event.external_calendar_id is None


def test_store_validation_failure_never_reaches_bridge(db_session, member, station):
    bridge = RecordingBridge()
    sync = EventSynchronizer(EventStore(db_session), bridge)
    fields = _pancake_breakfast(station)
    fields["end_time"] = fields["start_time"]

    with pytest.raises(ValidationError):
        sync.create(fields, member)
    assert bridge.calls == []


def test_update_is_mirrored_when_linked(db_session, member, station):
    bridge = RecordingBridge(external_id="abc123")
    sync = EventSynchronizer(EventStore(db_session), bridge)
    event = sync.create(_pancake_breakfast(station), member)

    updated = sync.update(event.id, {"title": "Pancake & Sausage Breakfast"})

    assert updated.title == "Pancake & Sausage Breakfast"
    action, sent = bridge.calls[-1]
    assert action == "update"
    assert sent["external_id"] == "abc123"
    assert sent["title"] == "Pancake & Sausage Breakfast"


def test_update_survives_bridge_failure(db_session, member, station):
    bridge = RecordingBridge(fail_on={"update"})
    sync = EventSynchronizer(EventStore(db_session), bridge)
    event = sync.create(_pancake_breakfast(station), member)

    updated = sync.update(event.id, {"title": "Moved Indoors"})
    assert EventStore(db_session).get(updated.id).title == "Moved Indoors"


def test_update_of_unlinked_event_skips_bridge(db_session, member, station):
    bridge = RecordingBridge(fail_on={"create"})
    sync = EventSynchronizer(EventStore(db_session), bridge)
    event = sync.create(_pancake_breakfast(station), member)

    sync.update(event.id, {"title": "Still Local"})
    assert [action for action, _ in bridge.calls] == ["create"]


def test_delete_twice_reports_not_found(db_session, member, station):
    bridge = RecordingBridge(external_id="abc123")
    sync = EventSynchronizer(EventStore(db_session), bridge)
    event = sync.create(_pancake_breakfast(station), member)

    sync.delete(event.id)
    with pytest.raises(NotFoundError) as exc:
        sync.delete(event.id)

    assert exc.value.code == ErrorCode.EVENT_NOT_FOUND.value
    deletes = [sent for action, sent in bridge.calls if action == "delete"]
    assert deletes == [{"external_id": "abc123"}]


def test_delete_survives_bridge_failure(db_session, member, station):
    bridge = RecordingBridge(fail_on={"delete"})
    sync = EventSynchronizer(EventStore(db_session), bridge)
    event = sync.create(_pancake_breakfast(station), member)

    sync.delete(event.id)
    with pytest.raises(NotFoundError):
        EventStore(db_session).get(event.id)
