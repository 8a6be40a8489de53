import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STATIC_DIR", str(BASE_DIR / "tests" / "no-static"))

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.plan import Plan  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import membership_service  # noqa: E402
from app.services.auth_service import create_access_token, hash_password  # noqa: E402

DEFAULT_PASSWORD = "secret123"
_password_hash = None


def _default_hash() -> str:
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(DEFAULT_PASSWORD)
    return _password_hash


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def client(monkeypatch):
    """Provide a TestClient with startup tasks patched out for isolation."""
    monkeypatch.setattr(main, "run_seed", lambda: None)
    monkeypatch.setattr(main, "init_database", lambda: True)

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def outbox(monkeypatch):
    """Capture outgoing OTP and welcome emails instead of talking to SMTP."""
    sent = []

    def _send_otp(to_email, otp, name):
        sent.append({"kind": "otp", "to": to_email, "otp": otp, "name": name})

    def _send_welcome(to_email, name):
        sent.append({"kind": "welcome", "to": to_email, "name": name})

    monkeypatch.setattr("app.routers.auth.send_otp_email", _send_otp)
    monkeypatch.setattr("app.routers.auth.send_welcome_email", _send_welcome)
    return sent


@pytest.fixture()
def make_user():
    counter = {"n": 0}

    def _make(role="member", verified=True, plan=None, valid_days=None, name=None, email=None, phone=None):
        counter["n"] += 1
        n = counter["n"]
        session = SessionLocal()
        try:
            user = User(
                name=name or f"{role.title()} {n}",
                email=email or f"{role}{n}@gym.com",
                phone=phone or f"90000000{n:02d}",
                password=_default_hash(),
                role=role,
                is_verified=verified,
                subscription_plan=plan,
                subscription_valid_till=(
                    datetime.utcnow() + timedelta(days=valid_days) if valid_days is not None else None
                ),
            )
            session.add(user)
            session.commit()
            return SimpleNamespace(id=user.id, email=user.email, role=user.role, phone=user.phone)
        finally:
            session.close()

    return _make


@pytest.fixture()
def make_plan():
    def _make(name="premium", price=1999, duration_in_days=30, features=None):
        session = SessionLocal()
        try:
            plan = Plan(name=name, price=price, duration_in_days=duration_in_days, features=features or [])
            session.add(plan)
            session.commit()
            return SimpleNamespace(id=plan.id, name=plan.name, price=plan.price, duration_in_days=plan.duration_in_days)
        finally:
            session.close()

    return _make


@pytest.fixture()
def assign():
    def _assign(member_id, trainer_id):
        session = SessionLocal()
        try:
            member = session.get(User, member_id)
            trainer = session.get(User, trainer_id)
            membership_service.assign_trainer(session, member, trainer)
            session.commit()
        finally:
            session.close()

    return _assign


@pytest.fixture()
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers
