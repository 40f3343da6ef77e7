"""
Auth Service - 注册、登录、邮箱验证、密码重置与账号停用/恢复

Every public method takes the request-scoped ``AsyncSession`` first and
returns a typed result or raises a ``ServiceError`` subclass. Storage,
crypto and transport errors are translated before they leave this module.
"""
import logging
import math
import secrets
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.base import utcnow
from authgate.common.exceptions import (
    AlreadyExists,
    InvalidCredentials,
    InvalidToken,
    NotFound,
)
from authgate.domains.admin.models import AuditLog
from authgate.domains.admin.repository import audit_log_repository
from authgate.domains.auth.jwt import TOKEN_TYPE_USER, TokenIssuer, get_token_issuer
from authgate.domains.auth.otp import (
    OtpKind,
    OtpNotFound,
    OtpRecord,
    OtpRegistry,
    generate_otp_id,
    get_otp_registry,
)
from authgate.domains.auth.passwords import PasswordHasher, get_password_hasher
from authgate.domains.auth.schemas import (
    ActiveOtp,
    OtpIssuedResponse,
    SigninResponse,
    StepTwoSignupRequest,
    StepTwoSignupResponse,
    VerifyTokenResponse,
)
from authgate.domains.notification.client import NotificationClient, get_notification_client
from authgate.domains.user import lifecycle
from authgate.domains.user.models import User
from authgate.domains.user.repository import user_repository
from authgate.domains.user.schemas import (
    AdminUserView,
    Pagination,
    UserListQuery,
    UserListResponse,
    UserProfile,
    UserSummary,
)

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset code has been sent."

EMAIL_TEMPLATES = {
    OtpKind.EMAIL_VERIFICATION: ("email-verification", "verificationCode", "15 minutes"),
    OtpKind.PASSWORD_RESET: ("password-reset", "resetCode", "10 minutes"),
}


class AuthService:
    """认证编排服务"""

    def __init__(
        self,
        repository=None,
        otp_registry: Optional[OtpRegistry] = None,
        token_issuer: Optional[TokenIssuer] = None,
        hasher: Optional[PasswordHasher] = None,
        notifier: Optional[NotificationClient] = None,
        audit_repository=None,
        require_email_verification: Optional[bool] = None,
        disclose_deactivated_accounts: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        from authgate.common.config import settings

        self.repository = repository or user_repository
        self.otp_registry = otp_registry or get_otp_registry()
        self.token_issuer = token_issuer or get_token_issuer()
        self.hasher = hasher or get_password_hasher()
        self.notifier = notifier or get_notification_client()
        self.audit_repository = audit_repository or audit_log_repository
        self.require_email_verification = (
            settings.require_email_verification
            if require_email_verification is None else require_email_verification
        )
        self.disclose_deactivated_accounts = (
            settings.disclose_deactivated_accounts
            if disclose_deactivated_accounts is None else disclose_deactivated_accounts
        )
        self.clock = clock
        self._dummy_hash: Optional[str] = None

    # =========================================================================
    # Tokens
    # =========================================================================

    def _sign_token(self, user: User) -> str:
        return self.token_issuer.issue({
            "sub": user.id,
            "email": user.email,
            "username": user.username,
            "typ": TOKEN_TYPE_USER,
            # password version: a reset invalidates earlier tokens
            "pwv": user.password_reset_count or 0,
        })

    async def authenticate(self, session: AsyncSession, token: str) -> User:
        """Resolve a bearer token to a live user or raise InvalidToken."""
        payload = self.token_issuer.verify(token, token_type=TOKEN_TYPE_USER)
        user = await self.repository.get_by_id(session, payload["sub"])
        if user is None or not user.is_active:
            raise InvalidToken()
        if payload.get("pwv", 0) != (user.password_reset_count or 0):
            raise InvalidToken()
        return user

    async def verify_token(self, session: AsyncSession, token: str) -> VerifyTokenResponse:
        try:
            user = await self.authenticate(session, token)
        except InvalidToken:
            return VerifyTokenResponse(valid=False)
        return VerifyTokenResponse(valid=True, user=UserProfile.model_validate(user))

    async def get_user_from_token(self, session: AsyncSession, token: str) -> UserProfile:
        user = await self.authenticate(session, token)
        return UserProfile.model_validate(user)

    # =========================================================================
    # Signup
    # =========================================================================

    async def step_one_signup(
        self, session: AsyncSession, username: str, email: str, password: str
    ) -> str:
        """Create the account shell; returns the new user id."""
        if await self.repository.email_exists(session, email):
            raise AlreadyExists("Email already in use")
        if await self.repository.username_exists(session, username):
            raise AlreadyExists("Username already taken")

        user = User(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            step_one_complete=True,
            step_two_complete=False,
            is_verified=False,
            is_active=True,
            password_reset_count=0,
        )
        # The unique index is the real guard against concurrent signups.
        user = await self.repository.create(session, user)
        logger.info(f"Signup step 1 completed: user_id={user.id}")
        return user.id

    async def step_two_signup(
        self, session: AsyncSession, user_id: str, profile: StepTwoSignupRequest
    ) -> StepTwoSignupResponse:
        """Complete the profile, send the verification code, issue a token."""
        user = await self.repository.get_by_id(session, user_id)
        if not user:
            raise NotFound("User not found")

        lifecycle.ensure_can_complete_step_two(user)
        lifecycle.complete_step_two(user, **profile.model_dump())
        await self.repository.save(session, user)

        try:
            record = await self._issue_otp(user, OtpKind.EMAIL_VERIFICATION)
        except Exception:
            await session.rollback()
            raise

        logger.info(f"Signup step 2 completed: user_id={user.id}")
        return StepTwoSignupResponse(
            access_token=self._sign_token(user),
            user=UserProfile.model_validate(user),
            verification_otp_id=record.id,
        )

    # =========================================================================
    # Signin
    # =========================================================================

    async def signin(self, session: AsyncSession, identifier: str, password: str) -> SigninResponse:
        user = await self.repository.get_by_email_or_username(session, identifier)
        if user is None:
            user = await self.repository.get_by_email_or_username(
                session, identifier, include_deleted=True
            )

        if user is None:
            # Same hashing cost as a real account.
            self.hasher.verify(password, self._get_dummy_hash())
            logger.info("Signin failed: unknown identifier")
            raise InvalidCredentials()

        if not self.hasher.verify(password, user.password_hash):
            logger.info(f"Signin failed: bad password for user_id={user.id}")
            raise InvalidCredentials()

        try:
            lifecycle.ensure_can_sign_in(
                user,
                require_verified=self.require_email_verification,
                disclose_deactivated=self.disclose_deactivated_accounts,
            )
        except InvalidCredentials:
            logger.info(f"Signin refused by account state: user_id={user.id}")
            raise

        return SigninResponse(
            access_token=self._sign_token(user),
            user=UserProfile.model_validate(user),
        )

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(secrets.token_urlsafe(16))
        return self._dummy_hash

    # =========================================================================
    # Email verification
    # =========================================================================

    async def request_email_verification(self, session: AsyncSession, email: str) -> OtpIssuedResponse:
        user = await self.repository.get_by_email(session, email)
        if not user:
            raise NotFound("User not found")
        lifecycle.ensure_can_verify_email(user)

        record = await self._issue_otp(user, OtpKind.EMAIL_VERIFICATION)
        return OtpIssuedResponse(otp_id=record.id, message="Verification code sent to your email")

    async def verify_email(self, session: AsyncSession, otp_id: str, code: str) -> str:
        """Consume a verification code; returns the verified user id.

        The account is checked before the code is spent, so a code sent to an
        already-verified or removed account is left untouched.
        """
        pending = await self.otp_registry.get(otp_id)
        if pending is not None and pending.kind == OtpKind.EMAIL_VERIFICATION:
            await self._get_unverified_user(session, pending.email)

        email = await self.otp_registry.verify(otp_id, code, OtpKind.EMAIL_VERIFICATION)
        user = await self._get_unverified_user(session, email)
        lifecycle.mark_verified(user, self.clock())
        await self.repository.save(session, user)
        logger.info(f"Email verified: user_id={user.id}")
        return user.id

    async def resend_email_verification(self, session: AsyncSession, otp_id: str) -> str:
        pending = await self.otp_registry.get(otp_id)
        if pending is not None and pending.kind == OtpKind.EMAIL_VERIFICATION:
            await self._get_unverified_user(session, pending.email)
        return await self._resend_otp(otp_id, OtpKind.EMAIL_VERIFICATION)

    async def _get_unverified_user(self, session: AsyncSession, email: str) -> User:
        user = await self.repository.get_by_email(session, email)
        if not user:
            raise NotFound("User not found")
        lifecycle.ensure_can_verify_email(user)
        return user

    # =========================================================================
    # Password reset
    # =========================================================================

    async def forgot_password(self, session: AsyncSession, email: str) -> OtpIssuedResponse:
        """Identical response whether or not the account exists."""
        user = await self.repository.get_by_email(session, email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return OtpIssuedResponse(otp_id=generate_otp_id(), message=FORGOT_PASSWORD_MESSAGE)

        record = await self._issue_otp(user, OtpKind.PASSWORD_RESET)
        return OtpIssuedResponse(otp_id=record.id, message=FORGOT_PASSWORD_MESSAGE)

    async def reset_password(
        self, session: AsyncSession, otp_id: str, code: str, new_password: str
    ) -> str:
        """Consume a reset code and store the new password; returns the user id."""
        email = await self.otp_registry.verify(otp_id, code, OtpKind.PASSWORD_RESET)

        user = await self.repository.get_by_email(session, email)
        if not user:
            raise NotFound("User not found")

        lifecycle.record_password_reset(user, self.hasher.hash(new_password), self.clock())
        await self.repository.save(session, user)
        logger.info(
            f"Password reset: user_id={user.id} count={user.password_reset_count}"
        )
        return user.id

    # =========================================================================
    # OTP dispatch
    # =========================================================================

    async def _issue_otp(self, user: User, kind: OtpKind) -> OtpRecord:
        """Generate a record and deliver its code; the record is dropped if delivery fails."""
        record = await self.otp_registry.generate(user.email, kind)
        try:
            await self._deliver(record, recipient_name=user.full_name)
        except Exception:
            await self.otp_registry.discard(record.id)
            raise
        return record

    async def _resend_otp(self, otp_id: str, kind: OtpKind) -> str:
        existing = await self.otp_registry.get(otp_id)
        if existing is None or existing.kind != kind:
            raise OtpNotFound()

        record = await self.otp_registry.resend(otp_id)
        try:
            await self._deliver(record)
        except Exception:
            await self.otp_registry.discard(record.id)
            raise
        return record.id

    async def _deliver(self, record: OtpRecord, recipient_name: Optional[str] = None) -> None:
        template_name, code_key, expiration = EMAIL_TEMPLATES[record.kind]
        await self.notifier.send_template_email(
            recipient_email=record.email,
            template_name=template_name,
            template_data={
                "recipientName": recipient_name or record.email.split("@")[0],
                code_key: record.code,
                "expirationTime": expiration,
            },
            priority="high",
        )

    async def active_otps(self) -> List[ActiveOtp]:
        """Development-only view of live codes."""
        return [
            ActiveOtp(
                id=r.id,
                email=r.email,
                code=r.code,
                kind=r.kind.value,
                expires_at=r.expires_at,
                attempts=r.attempts,
            )
            for r in await self.otp_registry.active()
        ]

    # =========================================================================
    # Admin user management
    # =========================================================================

    async def list_users(self, session: AsyncSession, query: UserListQuery) -> UserListResponse:
        """Admin listing; deactivated accounts are included."""
        page = max(1, query.page)
        limit = min(max(1, query.limit), 100)
        users, total = await self.repository.list_users(
            session,
            page=page,
            limit=limit,
            verified=query.verified,
            active=query.active,
            search=query.search,
            search_field=query.search_field,
            sort_by=query.sort_by,
            sort_order=query.sort_order.lower(),
            include_deleted=True,
        )
        return UserListResponse(
            users=[AdminUserView.model_validate(u) for u in users],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    async def get_user_details(self, session: AsyncSession, user_id: str) -> AdminUserView:
        user = await self.repository.get_by_id(session, user_id, include_deleted=True)
        if not user:
            raise NotFound("User not found")
        return AdminUserView.model_validate(user)

    async def deactivate_user(
        self,
        session: AsyncSession,
        user_id: str,
        admin_id: str,
        reason: Optional[str] = None,
    ) -> UserSummary:
        user = await self.repository.get_by_id(session, user_id, include_deleted=True)
        if not user:
            raise NotFound("User not found")

        lifecycle.ensure_can_deactivate(user)
        lifecycle.deactivate(user, self.clock())
        await self.repository.save(session, user)
        await self._audit(session, admin_id, "user.deactivate", user, reason)
        return _summary(user)

    async def reactivate_user(
        self,
        session: AsyncSession,
        user_id: str,
        admin_id: str,
        reason: Optional[str] = None,
    ) -> UserSummary:
        user = await self.repository.get_by_id(session, user_id, include_deleted=True)
        if not user:
            raise NotFound("User not found")

        lifecycle.ensure_can_reactivate(user)
        lifecycle.reactivate(user)
        await self.repository.save(session, user)
        await self._audit(session, admin_id, "user.reactivate", user, reason)
        return _summary(user)

    async def _audit(
        self,
        session: AsyncSession,
        admin_id: str,
        action: str,
        user: User,
        reason: Optional[str],
    ) -> None:
        details: Dict[str, Any] = {"username": user.username, "email": user.email}
        await self.audit_repository.create(session, AuditLog(
            actor_id=admin_id,
            action=action,
            resource_type="user",
            resource_id=user.id,
            reason=reason,
            details=details,
        ))
        logger.info(
            f"{action}: user {user.username} ({user.id}) by admin {admin_id}. "
            f"Reason: {reason or 'Not specified'}"
        )


def _summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
    )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
