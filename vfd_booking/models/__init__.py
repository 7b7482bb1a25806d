from vfd_booking.models.announcement import Announcement
from vfd_booking.models.base import Base
from vfd_booking.models.event import Event
from vfd_booking.models.location import Location
from vfd_booking.models.member import Member
from vfd_booking.models.signup_sheet import SignUpSheet

__all__ = ["Base", "Member", "Location", "Event", "SignUpSheet", "Announcement"]
