from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Settings are read at import time, so the environment goes first
_DB_DIR = tempfile.mkdtemp(prefix="vfd-booking-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(_DB_DIR) / 'test.db'}")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("AUTH_MODE", "dev")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("GOOGLE_CALENDAR_ENABLED", "false")
os.environ.setdefault("CALENDAR_TIMEZONE", "America/New_York")

from vfd_booking.db import SessionLocal, engine  # noqa: E402
from vfd_booking.main import app  # noqa: E402
from vfd_booking.models import Base, Location, Member  # noqa: E402
from vfd_booking.models.member import MemberRole  # noqa: E402
from tests.helpers import make_location, make_member  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def member(db_session) -> Member:
    return make_member(db_session, "member@example.com", name="Pat Member")


@pytest.fixture
def admin(db_session) -> Member:
    return make_member(db_session, "chief@example.com", role=MemberRole.ADMIN, name="Chief")


@pytest.fixture
def station(db_session) -> Location:
    return make_location(db_session)


@pytest.fixture(scope="session")
def rsa_private_key_pem() -> str:
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
