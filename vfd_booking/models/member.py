import enum

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from vfd_booking.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class MemberRole(str, enum.Enum):
    MEMBER = "member"
    WEBMASTER = "webmaster"
    ADMIN = "admin"


class Member(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "site_users"

    # Identity issued by the hosted auth provider (JWT "sub")
    auth_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MemberRole.MEMBER,
    )
