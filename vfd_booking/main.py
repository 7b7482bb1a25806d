from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from vfd_booking.api.v1.router import router as v1_router
from vfd_booking.core.config import settings
from vfd_booking.core.logging import configure_logging
from vfd_booking.middleware.request_id import RequestIdMiddleware
from vfd_booking.middleware.security_headers import SecurityHeadersMiddleware

configure_logging()

app = FastAPI(title="Cool Spring VFD Booking API")

# Starlette runs the LAST added middleware FIRST (outermost), so request ids
# and security headers also cover CORS preflight responses.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/")
def root():
    return {"name": "Cool Spring VFD Booking API", "status": "ok"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "calendar_mirror": "enabled" if settings.google_calendar_enabled else "disabled",
    }


app.include_router(v1_router, prefix="/v1")
