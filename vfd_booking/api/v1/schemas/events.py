from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _ensure_tzaware(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return value


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class TZAwareMixin(BaseModel):
    @field_validator(
        "start_time",
        "end_time",
        mode="after",
        check_fields=False,
    )
    @classmethod
    def _validate_tzaware(cls, value: datetime | None) -> datetime | None:
        return _ensure_tzaware(value)


class EventCreate(TZAwareMixin, SchemaBase):
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    location_id: UUID | None = None
    is_public: bool = True

    @model_validator(mode="after")
    def _validate_time_bounds(self):
        if not self.title.strip():
            raise ValueError("title is required")
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


# Columns that are NOT NULL; a PATCH may omit them but not clear them
NON_NULLABLE_UPDATE_FIELDS = ("title", "start_time", "end_time", "is_public")


class EventUpdate(TZAwareMixin, SchemaBase):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    location_id: UUID | None = None
    is_public: bool | None = None

    @model_validator(mode="after")
    def _validate_time_bounds(self):
        for name in NON_NULLABLE_UPDATE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if self.title is not None and not self.title.strip():
            raise ValueError("title is required")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventOut(SchemaBase):
    id: UUID
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    location_id: UUID | None = None
    location_name: str | None = None
    is_public: bool
    created_by: UUID
    owner_email: str | None = None
    external_calendar_id: str | None = None
    created_at: datetime
    updated_at: datetime


class LocationOut(SchemaBase):
    id: UUID
    name: str
    description: str | None = None
    color: str | None = None
    created_at: datetime
