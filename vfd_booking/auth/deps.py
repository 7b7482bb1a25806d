from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from vfd_booking.auth.jwt import verify_access_token
from vfd_booking.core.config import settings
from vfd_booking.db import get_db
from vfd_booking.models import Member
from vfd_booking.models.member import MemberRole

logger = structlog.get_logger(__name__)

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_member(db: Session, email: str, auth_id: str | None = None) -> Member:
    """Map an authenticated identity onto its ``site_users`` row, creating it on first sight."""
    email = email.strip().lower()
    clauses = [Member.email == email]
    if auth_id:
        clauses.append(Member.auth_id == auth_id)
    member = db.scalar(select(Member).where(or_(*clauses)))

    if member is None:
        member = Member(email=email, auth_id=auth_id, role=MemberRole.MEMBER)
        db.add(member)
        db.commit()
        db.refresh(member)
        logger.info("member_provisioned", member_id=str(member.id), email=email)
    elif auth_id and member.auth_id is None:
        member.auth_id = auth_id
        db.add(member)
        db.commit()

    return member


def get_current_member(request: Request, db: DBSession) -> Member:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise _unauthorized("missing bearer token")

    token = auth.removeprefix("Bearer ").strip()

    # Local dev auth only
    if settings.auth_mode == "dev" and settings.env == "local":
        prefix = settings.dev_auth_prefix
        if not token.startswith(prefix):
            raise _unauthorized(f"invalid dev token (expected prefix {prefix})")

        email = token.removeprefix(prefix).strip()
        if "@" not in email:
            raise _unauthorized("invalid email in token")
        return resolve_member(db, email)

    if settings.auth_mode == "jwt":
        try:
            claims = verify_access_token(token)
        except ValueError as exc:
            raise _unauthorized(str(exc)) from None

        email = claims.get("email")
        if not email:
            raise _unauthorized("token has no email claim")
        return resolve_member(db, email, auth_id=str(claims["sub"]))

    raise _unauthorized("auth not configured")


CurrentMember = Annotated[Member, Depends(get_current_member)]


def get_optional_member(request: Request, db: DBSession) -> Member | None:
    if not request.headers.get("Authorization"):
        return None
    return get_current_member(request, db)


OptionalMember = Annotated[Member | None, Depends(get_optional_member)]
