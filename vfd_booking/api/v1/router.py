from fastapi import APIRouter

from vfd_booking.api.v1.calendar import router as calendar_router
from vfd_booking.api.v1.events import router as events_router
from vfd_booking.api.v1.me import router as me_router
from vfd_booking.api.v1.signup_sheets import router as signup_sheets_router

router = APIRouter()
router.include_router(events_router)
router.include_router(calendar_router)
router.include_router(signup_sheets_router)
router.include_router(me_router)
