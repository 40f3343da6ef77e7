"""Shared fixtures: in-memory database, fake clock, recording email client."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from authgate.common.database import db_manager
from authgate.common.exceptions import DependencyUnavailable
from authgate.domains.admin.service import AdminService, get_admin_service
from authgate.domains.auth.jwt import TokenIssuer
from authgate.domains.auth.otp import OtpRegistry
from authgate.domains.auth.passwords import PasswordHasher
from authgate.domains.auth.service import AuthService, get_auth_service
from authgate.domains.auth.schemas import StepTwoSignupRequest

TEST_SECRET = "test-secret"
PASSWORD = "secret123"


class FakeClock:
    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Stands in for the outbound email service."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail = False
        self.healthy = True

    async def send_template_email(self, recipient_email, template_name, template_data, priority="normal"):
        if self.fail:
            raise DependencyUnavailable("Email service temporarily unavailable")
        self.sent.append({
            "recipient_email": recipient_email,
            "template_name": template_name,
            "template_data": template_data,
            "priority": priority,
        })
        return {"success": True}

    async def check_health(self) -> bool:
        return self.healthy

    def last_code(self) -> str:
        data = self.sent[-1]["template_data"]
        return data.get("verificationCode") or data.get("resetCode")


@pytest_asyncio.fixture
async def database():
    await db_manager.initialize(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield db_manager
    await db_manager.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.get_session() as s:
        yield s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def hasher():
    # Lowest cost bcrypt accepts
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret=TEST_SECRET)


@pytest.fixture
def otp_registry(clock):
    return OtpRegistry(clock=clock)


@pytest.fixture
def auth_service(otp_registry, token_issuer, hasher, notifier, clock):
    return AuthService(
        otp_registry=otp_registry,
        token_issuer=token_issuer,
        hasher=hasher,
        notifier=notifier,
        require_email_verification=True,
        disclose_deactivated_accounts=True,
        clock=clock,
    )


@pytest.fixture
def admin_service(token_issuer, hasher):
    return AdminService(token_issuer=token_issuer, hasher=hasher)


@pytest.fixture
def register_user(auth_service, notifier, clock):
    """Run the full signup; returns the user id."""

    async def _register(session, username="alice", email="a@x.io", password=PASSWORD, verify=True):
        user_id = await auth_service.step_one_signup(session, username, email, password)
        result = await auth_service.step_two_signup(
            session, user_id, StepTwoSignupRequest(full_name=username.title())
        )
        if verify:
            await auth_service.verify_email(session, result.verification_otp_id, notifier.last_code())
        # keep resend cooldowns independent between users
        clock.advance(seconds=61)
        return user_id

    return _register


@pytest_asyncio.fixture
async def client(database, auth_service, admin_service):
    from authgate.main import app

    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_admin_service] = lambda: admin_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()
