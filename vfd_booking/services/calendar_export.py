"""iCalendar export and Google Calendar "add event" links.

Properties are emitted in the order they are added (``sorted=False``) so the
feed keeps a fixed field order; folding and text escaping come from
``icalendar``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from urllib.parse import quote

from icalendar import Calendar, Event as ICalEvent, vCalAddress, vText

from vfd_booking.core.config import settings
from vfd_booking.core.dates import as_utc, to_ical_utc
from vfd_booking.models import Event
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import ValidationError

GOOGLE_RENDER_URL = "https://calendar.google.com/calendar/render?action=TEMPLATE"
ICAL_FILENAME = "cool-spring-events.ics"

# Same unreserved set as JavaScript encodeURIComponent
URI_SAFE = "!'()*"


def _utc(value: datetime) -> datetime:
    return as_utc(value).replace(microsecond=0)


def _organizer(event: Event) -> vCalAddress:
    email = event.owner_email or f"no-reply@{settings.ical_uid_domain}"
    organizer = vCalAddress(f"mailto:{email}")
    organizer.params["cn"] = vText(settings.ical_organizer_name)
    return organizer


def _vevent(event: Event, stamp: datetime) -> ICalEvent:
    vevent = ICalEvent()
    vevent.add("uid", f"{event.id}@{settings.ical_uid_domain}")
    vevent.add("dtstamp", stamp)
    vevent.add("dtstart", _utc(event.start_time))
    vevent.add("dtend", _utc(event.end_time))
    vevent.add("summary", event.title)
    if event.description:
        vevent.add("description", event.description)
    if event.location_name:
        vevent.add("location", event.location_name)
    vevent.add("organizer", _organizer(event))
    return vevent


def build_calendar(events: Iterable[Event], now: datetime | None = None) -> Calendar:
    stamp = _utc(now or datetime.now(timezone.utc))

    cal = Calendar()
    cal.add("version", "2.0")
    cal.add("prodid", settings.ical_prodid)
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", settings.ical_calendar_name)
    cal.add("x-wr-timezone", settings.calendar_timezone)

    for event in events:
        cal.add_component(_vevent(event, stamp))
    return cal


def export_ical(events: Iterable[Event], now: datetime | None = None) -> str:
    return build_calendar(events, now).to_ical(sorted=False).decode("utf-8")


def google_calendar_url(events: list[Event]) -> str:
    """Prefilled "add to Google Calendar" link for the first event."""
    if not events:
        raise ValidationError(ErrorCode.NO_EVENTS.value, "No events to add to Google Calendar")

    event = events[0]
    url = (
        f"{GOOGLE_RENDER_URL}"
        f"&text={quote(event.title, safe=URI_SAFE)}"
        f"&dates={to_ical_utc(event.start_time)}/{to_ical_utc(event.end_time)}"
    )
    if event.description:
        url += f"&details={quote(event.description, safe=URI_SAFE)}"
    if event.location_name:
        url += f"&location={quote(event.location_name, safe=URI_SAFE)}"
    return url
