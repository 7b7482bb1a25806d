import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vfd_booking.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from vfd_booking.models.location import Location
from vfd_booking.models.member import Member


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        sa.CheckConstraint("end_time > start_time", name="ck_events_end_after_start"),
        sa.Index("ix_events_start_time", "start_time"),
    )

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("site_users.id", ondelete="CASCADE"), nullable=False
    )

    # Id issued by the external calendar once the event is mirrored
    external_calendar_id: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    location: Mapped[Location | None] = relationship(lazy="joined")
    owner: Mapped[Member] = relationship(lazy="joined")

    @property
    def location_name(self) -> str | None:
        return self.location.name if self.location else None

    @property
    def owner_email(self) -> str | None:
        return self.owner.email if self.owner else None
