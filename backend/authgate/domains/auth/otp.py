"""
OTP Registry - one-time codes for email verification and password reset.

Records live in an injected store keyed by an opaque, unguessable id. The
code travels out of band (email); the id is handed to the client to
correlate the attempt. Records are process-local with the default
``InMemoryOtpStore``: a verify/resend that lands on another instance sees
"not found".

State per record::

    CREATED --verify ok--> USED      (kept, later verifies fail AlreadyUsed)
    CREATED --ttl-------->  EXPIRED  (evicted)
    CREATED --attempts>3->  LOCKED   (evicted)
"""

import asyncio
import dataclasses
import enum
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Protocol

from authgate.common.exceptions import (
    NotFound,
    PreconditionFailed,
    RateLimited,
    ServiceError,
    Unauthorized,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RESEND_COOLDOWN = timedelta(seconds=60)
CODE_LENGTH = 6


class OtpKind(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"

    @property
    def ttl(self) -> timedelta:
        return OTP_TTL[self]


OTP_TTL = {
    OtpKind.EMAIL_VERIFICATION: timedelta(minutes=15),
    OtpKind.PASSWORD_RESET: timedelta(minutes=10),
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class OtpError(ServiceError):
    """Base for registry failures."""


class OtpNotFound(OtpError, NotFound):
    default_message = "Invalid or expired code"


class OtpExpired(OtpNotFound):
    pass


class OtpTooManyAttempts(OtpNotFound):
    """Locked record; reported like a missing one."""


class OtpWrongKind(OtpNotFound):
    pass


class OtpAlreadyUsed(OtpError, PreconditionFailed):
    default_message = "Code has already been used"


class OtpWrongCode(OtpError, Unauthorized):
    default_message = "Invalid verification code"


class OtpResendTooSoon(OtpError, RateLimited):
    default_message = "Please wait before requesting a new code"


# ---------------------------------------------------------------------------
# Record + store
# ---------------------------------------------------------------------------

@dataclass
class OtpRecord:
    id: str
    email: str
    code: str
    kind: OtpKind
    expires_at: datetime
    attempts: int = 0
    is_used: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class OtpStore(Protocol):
    """Mapping of id -> record. Atomicity is provided by OtpRegistry's lock."""

    async def get(self, otp_id: str) -> Optional[OtpRecord]: ...

    async def put(self, record: OtpRecord) -> None: ...

    async def delete(self, otp_id: str) -> None: ...

    async def values(self) -> List[OtpRecord]: ...


class InMemoryOtpStore:
    """Process-local store; lost on restart."""

    def __init__(self):
        self._records: Dict[str, OtpRecord] = {}

    async def get(self, otp_id: str) -> Optional[OtpRecord]:
        return self._records.get(otp_id)

    async def put(self, record: OtpRecord) -> None:
        self._records[record.id] = record

    async def delete(self, otp_id: str) -> None:
        self._records.pop(otp_id, None)

    async def values(self) -> List[OtpRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


def generate_code() -> str:
    """Uniformly random 6-digit numeric string."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def generate_otp_id() -> str:
    return f"otp_{secrets.token_urlsafe(24)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class OtpRegistry:
    """Issues, checks and rotates one-time codes."""

    def __init__(
        self,
        store: Optional[OtpStore] = None,
        clock: Callable[[], datetime] = _utcnow,
        max_attempts: int = MAX_ATTEMPTS,
        resend_cooldown: timedelta = RESEND_COOLDOWN,
    ):
        self.store = store if store is not None else InMemoryOtpStore()
        self.clock = clock
        self.max_attempts = max_attempts
        self.resend_cooldown = resend_cooldown
        self._lock = asyncio.Lock()

    async def generate(self, email: str, kind: OtpKind) -> OtpRecord:
        async with self._lock:
            now = self.clock()
            await self._evict_expired(now)
            record = OtpRecord(
                id=generate_otp_id(),
                email=email,
                code=generate_code(),
                kind=kind,
                expires_at=now + kind.ttl,
                created_at=now,
            )
            await self.store.put(record)
            logger.info(f"OTP issued: id={record.id} kind={kind.value}")
            return dataclasses.replace(record)

    async def verify(self, otp_id: str, code: str, expected_kind: OtpKind) -> str:
        """Consume a code; returns the email the record was issued for."""
        async with self._lock:
            now = self.clock()
            await self._evict_expired(now, keep=otp_id)

            record = await self.store.get(otp_id)
            if record is None:
                raise OtpNotFound()

            # Charged before any comparison so every guess counts.
            record.attempts += 1
            await self.store.put(record)

            if record.kind != expected_kind:
                raise OtpWrongKind()

            if record.is_used:
                raise OtpAlreadyUsed()

            if record.is_expired(now):
                await self.store.delete(otp_id)
                raise OtpExpired()

            if record.attempts > self.max_attempts:
                await self.store.delete(otp_id)
                logger.warning(f"OTP locked after too many attempts: id={otp_id}")
                raise OtpTooManyAttempts()

            if not secrets.compare_digest(record.code, code):
                raise OtpWrongCode()

            record.is_used = True
            await self.store.put(record)
            return record.email

    async def resend(self, otp_id: str) -> OtpRecord:
        """Rotate the code of a live record, keeping its id."""
        async with self._lock:
            now = self.clock()
            await self._evict_expired(now)

            record = await self.store.get(otp_id)
            if record is None:
                raise OtpNotFound()

            if record.is_used:
                raise OtpAlreadyUsed()

            if now - record.created_at < self.resend_cooldown:
                raise OtpResendTooSoon()

            record.code = generate_code()
            record.attempts = 0
            record.created_at = now
            record.expires_at = now + record.kind.ttl
            await self.store.put(record)
            logger.info(f"OTP rotated: id={record.id} kind={record.kind.value}")
            return dataclasses.replace(record)

    async def discard(self, otp_id: str) -> None:
        """Drop a record, e.g. when its code could not be delivered."""
        async with self._lock:
            await self.store.delete(otp_id)

    async def get(self, otp_id: str) -> Optional[OtpRecord]:
        async with self._lock:
            record = await self.store.get(otp_id)
            return dataclasses.replace(record) if record else None

    async def active(self) -> List[OtpRecord]:
        """Unexpired, unused records (development listing)."""
        async with self._lock:
            now = self.clock()
            return [
                dataclasses.replace(r) for r in await self.store.values()
                if not r.is_used and not r.is_expired(now)
            ]

    async def _evict_expired(self, now: datetime, keep: Optional[str] = None) -> None:
        for record in await self.store.values():
            if record.id != keep and record.is_expired(now):
                await self.store.delete(record.id)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_otp_registry: Optional[OtpRegistry] = None


def get_otp_registry() -> OtpRegistry:
    global _otp_registry
    if _otp_registry is None:
        _otp_registry = OtpRegistry()
    return _otp_registry
