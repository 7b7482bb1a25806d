from fastapi import APIRouter
from pydantic import BaseModel

from vfd_booking.auth.deps import CurrentMember
from vfd_booking.auth.permissions import Permission, has_permission

router = APIRouter(prefix="/me", tags=["me"])


class MeOut(BaseModel):
    member_id: str
    email: str
    name: str | None
    role: str
    permissions: list[str]


@router.get("", response_model=MeOut)
def me(member: CurrentMember):
    return MeOut(
        member_id=str(member.id),
        email=member.email,
        name=member.name,
        role=member.role.value,
        permissions=[p.value for p in Permission if has_permission(member, p)],
    )
