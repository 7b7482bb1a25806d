from __future__ import annotations

import enum
import uuid

from vfd_booking.models import Member
from vfd_booking.models.member import MemberRole
from vfd_booking.services.error_codes import ErrorCode
from vfd_booking.services.exceptions import PermissionDeniedError


class Permission(str, enum.Enum):
    CREATE_EVENT = "create_event"
    MANAGE_ANY_EVENT = "manage_any_event"
    CREATE_SIGNUP_SHEET = "create_signup_sheet"
    MANAGE_ANY_SIGNUP_SHEET = "manage_any_signup_sheet"
    SIGN_UP = "sign_up"


_MEMBER_PERMISSIONS = frozenset(
    {Permission.CREATE_EVENT, Permission.CREATE_SIGNUP_SHEET, Permission.SIGN_UP}
)

ROLE_PERMISSIONS: dict[MemberRole, frozenset[Permission]] = {
    MemberRole.MEMBER: _MEMBER_PERMISSIONS,
    MemberRole.WEBMASTER: frozenset(Permission),
    MemberRole.ADMIN: frozenset(Permission),
}


def has_permission(member: Member, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(member.role, frozenset())


def can_manage(member: Member, owner_id: uuid.UUID | None, permission: Permission) -> bool:
    """Owners manage their own rows; elevated roles hold the ``MANAGE_ANY_*`` grant."""
    if has_permission(member, permission):
        return True
    return owner_id is not None and owner_id == member.id


def require_permission(member: Member, permission: Permission) -> None:
    if not has_permission(member, permission):
        raise PermissionDeniedError(
            ErrorCode.PERMISSION_DENIED.value, f"missing permission: {permission.value}"
        )


def require_manage(member: Member, owner_id: uuid.UUID | None, permission: Permission) -> None:
    if not can_manage(member, owner_id, permission):
        raise PermissionDeniedError(
            ErrorCode.PERMISSION_DENIED.value, "only the owner or an admin can change this"
        )
