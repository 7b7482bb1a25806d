"""Mirror of booking events into a shared Google Calendar.

Authentication uses the service-account JWT bearer flow: a short-lived RS256
assertion is exchanged at the token endpoint for an access token, which then
authorizes the Calendar v3 event calls.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import jwt
import structlog
from redis import Redis
from redis.exceptions import RedisError

from vfd_booking.core.config import ConfigurationError, Settings, settings
from vfd_booking.core.dates import to_rfc3339
from vfd_booking.integrations.notifications import CalendarUpdateNotifier, calendar_change

logger = structlog.get_logger(__name__)

CALENDAR_EVENTS_SCOPE = "https://www.googleapis.com/auth/calendar.events"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_TTL_SECONDS = 3600
TOKEN_REFRESH_MARGIN_SECONDS = 60


class CalendarBridgeError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class GoogleCalendarConfig:
    service_account_email: str
    private_key: str
    calendar_id: str
    token_uri: str = "https://oauth2.googleapis.com/token"
    api_base: str = "https://www.googleapis.com/calendar/v3"
    timezone: str = "America/New_York"
    scope: str = CALENDAR_EVENTS_SCOPE

    def __post_init__(self) -> None:
        if not self.service_account_email or "@" not in self.service_account_email:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_EMAIL must be a service account email")
        if not self.private_key or "PRIVATE KEY-----" not in self.private_key:
            raise ConfigurationError("GOOGLE_PRIVATE_KEY must be a PEM encoded private key")
        if not self.calendar_id:
            raise ConfigurationError("GOOGLE_CALENDAR_ID is required")

    @classmethod
    def from_settings(cls, source: Settings = settings) -> GoogleCalendarConfig:
        return cls(
            service_account_email=source.google_service_account_email or "",
            private_key=source.google_private_key or "",
            calendar_id=source.google_calendar_id or "",
            token_uri=source.google_token_uri,
            api_base=source.google_calendar_api_base,
            timezone=source.calendar_timezone,
        )


class TokenCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, token: str, ttl_seconds: int) -> None: ...


class MemoryTokenCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._tokens.get(key)
            if entry is None:
                return None
            token, expires_at = entry
            if self._clock() >= expires_at:
                del self._tokens[key]
                return None
            return token

    def set(self, key: str, token: str, ttl_seconds: int) -> None:
        with self._lock:
            self._tokens[key] = (token, self._clock() + ttl_seconds)


class RedisTokenCache:
    def __init__(self, redis: Redis, prefix: str = "gcal:token:") -> None:
        self.redis = redis
        self.prefix = prefix

    def get(self, key: str) -> str | None:
        try:
            value = self.redis.get(f"{self.prefix}{key}")
        except RedisError as exc:
            logger.warning("calendar_token_cache_unavailable", error=str(exc))
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, token: str, ttl_seconds: int) -> None:
        try:
            self.redis.setex(f"{self.prefix}{key}", ttl_seconds, token)
        except RedisError as exc:
            logger.warning("calendar_token_cache_unavailable", error=str(exc))


def _upstream_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or fallback
    if isinstance(error, str):
        return body.get("error_description") or error
    return fallback


def _json_body(response: httpx.Response, fallback: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise CalendarBridgeError(
            f"{fallback}: response is not JSON", status_code=response.status_code
        ) from exc
    if not isinstance(body, dict):
        raise CalendarBridgeError(
            f"{fallback}: unexpected response body", status_code=response.status_code
        )
    return body


class GoogleCalendarBridge:
    def __init__(
        self,
        config: GoogleCalendarConfig,
        http: httpx.Client | None = None,
        token_cache: TokenCache | None = None,
        notifier: CalendarUpdateNotifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.http = http or httpx.Client()
        self.token_cache = token_cache
        self.notifier = notifier
        self._clock = clock

    def close(self) -> None:
        self.http.close()

    # -- auth -------------------------------------------------------------

    def build_assertion(self) -> str:
        now = int(self._clock())
        claims = {
            "iss": self.config.service_account_email,
            "sub": self.config.service_account_email,
            "scope": self.config.scope,
            "aud": self.config.token_uri,
            "iat": now,
            "exp": now + ASSERTION_TTL_SECONDS,
        }
        return jwt.encode(
            claims,
            self.config.private_key,
            algorithm="RS256",
            headers={"typ": "JWT"},
        )

    def _cache_key(self) -> str:
        return f"{self.config.service_account_email}:{self.config.scope}"

    def get_access_token(self) -> str:
        if self.token_cache is not None:
            cached = self.token_cache.get(self._cache_key())
            if cached:
                return cached

        try:
            assertion = self.build_assertion()
        except (jwt.PyJWTError, ValueError) as exc:
            raise CalendarBridgeError(f"failed to sign service account assertion: {exc}") from exc

        try:
            response = self.http.post(
                self.config.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            raise CalendarBridgeError(f"failed to get access token: {exc}") from exc

        if not response.is_success:
            message = _upstream_message(response, "token exchange rejected")
            logger.error("calendar_token_failed", status=response.status_code, error=message)
            raise CalendarBridgeError(
                f"failed to get access token: {message}", status_code=response.status_code
            )

        body = _json_body(response, "failed to get access token")
        token = body.get("access_token")
        if not token:
            raise CalendarBridgeError("failed to get access token: no access_token in response")

        if self.token_cache is not None:
            try:
                expires_in = int(body.get("expires_in") or ASSERTION_TTL_SECONDS)
            except (TypeError, ValueError):
                expires_in = ASSERTION_TTL_SECONDS
            ttl = expires_in - TOKEN_REFRESH_MARGIN_SECONDS
            if ttl > 0:
                self.token_cache.set(self._cache_key(), token, ttl)
        return token

    # -- transport --------------------------------------------------------

    def _events_url(self, external_id: str | None = None) -> str:
        url = f"{self.config.api_base}/calendars/{quote(self.config.calendar_id, safe='@')}/events"
        if external_id:
            url = f"{url}/{quote(external_id, safe='')}"
        return url

    def _request(
        self,
        method: str,
        url: str,
        fallback: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        token = self.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = self.http.request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise CalendarBridgeError(f"{fallback}: {exc}") from exc

        if not response.is_success:
            message = _upstream_message(response, fallback)
            logger.error(
                "calendar_api_error",
                method=method,
                status=response.status_code,
                error=message,
            )
            raise CalendarBridgeError(message, status_code=response.status_code)
        return response

    def _event_body(
        self,
        title: str,
        description: str | None,
        start: datetime,
        end: datetime,
        location: str | None,
    ) -> dict[str, Any]:
        return {
            "summary": title,
            "description": description or "",
            "location": location,
            "start": {"dateTime": to_rfc3339(start, self.config.timezone), "timeZone": self.config.timezone},
            "end": {"dateTime": to_rfc3339(end, self.config.timezone), "timeZone": self.config.timezone},
        }

    def _notify(self, action: str, external_id: str) -> None:
        if self.notifier is not None:
            self.notifier.publish(calendar_change(action, external_id))

    # -- operations -------------------------------------------------------

    def create_calendar_event(
        self,
        title: str,
        description: str | None,
        start: datetime,
        end: datetime,
        location: str | None = None,
    ) -> dict[str, Any]:
        body = self._event_body(title, description, start, end, location)
        response = self._request("POST", self._events_url(), "Failed to create event", json=body)
        result = _json_body(response, "Failed to create event")
        logger.info("calendar_event_created", external_id=result.get("id"))
        self._notify("created", result.get("id", ""))
        return result

    def update_calendar_event(
        self,
        external_id: str,
        title: str,
        description: str | None,
        start: datetime,
        end: datetime,
        location: str | None = None,
    ) -> dict[str, Any]:
        body = self._event_body(title, description, start, end, location)
        response = self._request(
            "PATCH", self._events_url(external_id), "Failed to update event", json=body
        )
        result = _json_body(response, "Failed to update event")
        logger.info("calendar_event_updated", external_id=external_id)
        self._notify("updated", external_id)
        return result

    def delete_calendar_event(self, external_id: str) -> None:
        self._request("DELETE", self._events_url(external_id), "Failed to delete event")
        logger.info("calendar_event_deleted", external_id=external_id)
        self._notify("deleted", external_id)

    def get_calendar_event(self, external_id: str) -> dict[str, Any]:
        response = self._request("GET", self._events_url(external_id), "Failed to get event")
        return _json_body(response, "Failed to get event")

    def list_calendar_events(self, time_min: datetime | None = None) -> list[dict[str, Any]]:
        time_min = time_min or datetime.now(timezone.utc)
        response = self._request(
            "GET",
            self._events_url(),
            "Failed to list events",
            params={"timeMin": time_min.astimezone(timezone.utc).isoformat()},
        )
        items = _json_body(response, "Failed to list events").get("items") or []
        return [item for item in items if isinstance(item, dict)]
