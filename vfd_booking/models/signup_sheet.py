import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vfd_booking.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class SheetStatus(str, enum.Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class SignUpSheet(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "signup_sheets"

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[SheetStatus] = mapped_column(
        Enum(SheetStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SheetStatus.ONLINE,
    )
    event_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    sign_up_by: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    point_of_contact: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    push_to_calendar: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{name, positions: [{name, maxSlots, members: [{id, note?, remindMe?}]}]}]
    groups: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("site_users.id", ondelete="CASCADE"), nullable=False
    )
    # Companion calendar entry for the activity
    calendar_event_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="SET NULL"), nullable=True
    )

    # Bumped on every write; guards the groups read-check-write cycle
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
