from vfd_booking.api.v1.schemas.events import EventCreate, EventOut, EventUpdate, LocationOut
from vfd_booking.api.v1.schemas.signup_sheets import (
    SignUpIn,
    SignUpOut,
    SignUpSheetCreate,
    SignUpSheetCreatedOut,
    SignUpSheetListOut,
    SignUpSheetOut,
    SignUpStatus,
    WithdrawIn,
)

__all__ = [
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "LocationOut",
    "SignUpIn",
    "SignUpOut",
    "SignUpSheetCreate",
    "SignUpSheetCreatedOut",
    "SignUpSheetListOut",
    "SignUpSheetOut",
    "SignUpStatus",
    "WithdrawIn",
]
