from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vfd_booking.models.signup_sheet import SheetStatus


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore", populate_by_name=True)


class PositionIn(SchemaBase):
    name: str = Field(min_length=1)
    max_slots: int = Field(default=1, alias="maxSlots", ge=-1)


class GroupIn(SchemaBase):
    name: str = Field(min_length=1)
    positions: list[PositionIn] = Field(min_length=1)


class SignUpSheetCreate(SchemaBase):
    title: str = Field(min_length=1, max_length=300)
    status: SheetStatus = SheetStatus.ONLINE
    event_date: date
    start_time: str = Field(description='Wall-clock time, "HH:MM" or "h:MM AM"')
    end_time: str
    sign_up_by: date
    point_of_contact: list[UUID] = Field(default_factory=list)
    location_id: UUID | None = None
    push_to_calendar: bool = False
    memo: str | None = None
    groups: list[GroupIn] = Field(min_length=1)
    create_announcement: bool = False
    announcement_expires_at: datetime | None = None

    @field_validator("announcement_expires_at", mode="after")
    @classmethod
    def _validate_tzaware(cls, value: datetime | None) -> datetime | None:
        if value is not None and (value.tzinfo is None or value.tzinfo.utcoffset(value) is None):
            raise ValueError("datetime must be timezone-aware")
        return value


class SignUpIn(SchemaBase):
    group: str = Field(min_length=1)
    position: str = Field(min_length=1)
    note: str | None = Field(default=None, max_length=500)
    remind_me: bool = Field(default=False, alias="remindMe")


class WithdrawIn(SchemaBase):
    group: str = Field(min_length=1)
    position: str = Field(min_length=1)
    member_id: UUID | None = None


class SlotMemberOut(SchemaBase):
    id: str
    note: str | None = None
    remind_me: bool = Field(default=False, alias="remindMe")


class PositionOut(SchemaBase):
    name: str
    max_slots: int = Field(alias="maxSlots")
    members: list[SlotMemberOut] = Field(default_factory=list)
    open_slots: int | None = None
    available: bool = True


class GroupOut(SchemaBase):
    name: str
    positions: list[PositionOut]


class SignUpSheetOut(SchemaBase):
    id: UUID
    title: str
    status: SheetStatus
    event_date: datetime
    start_time: datetime
    end_time: datetime
    sign_up_by: datetime
    point_of_contact: list[str]
    location_id: UUID | None = None
    push_to_calendar: bool
    memo: str | None = None
    groups: list[GroupOut]
    created_by: UUID
    calendar_event_id: UUID | None = None
    filled_slots: int = 0
    total_slots: int = 0


class SignUpSheetListOut(SchemaBase):
    current: list[SignUpSheetOut]
    past: list[SignUpSheetOut]


class SignUpSheetCreatedOut(SchemaBase):
    sheet: SignUpSheetOut
    announcement_created: bool | None = None


class SignUpStatus(str, Enum):
    JOINED = "joined"
    ALREADY_JOINED = "already_joined"
    WITHDRAWN = "withdrawn"


class SignUpOut(SchemaBase):
    status: SignUpStatus
    sheet: SignUpSheetOut
