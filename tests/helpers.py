from __future__ import annotations

from vfd_booking.models import Location, Member
from vfd_booking.models.member import MemberRole


def make_member(db, email: str, role: MemberRole = MemberRole.MEMBER, name: str | None = None) -> Member:
    member = Member(email=email, role=role, name=name)
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def make_location(db, name: str = "Station 1") -> Location:
    location = Location(name=name)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def auth_headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer dev_{email}"}
