"""
Account lifecycle rules.

Pure checks and transitions over a ``User``. Services call the ``ensure_*``
guard before any side effect, then apply the matching transition and
persist the result.
"""

from datetime import datetime

from authgate.common.exceptions import (
    AccountDeactivated,
    InvalidCredentials,
    PreconditionFailed,
)
from authgate.domains.user.models import User


def ensure_can_sign_in(
    user: User,
    require_verified: bool = True,
    disclose_deactivated: bool = True,
) -> None:
    """Signin gate: complete signup, verified email, active, not deleted.

    Incomplete or unverified accounts fail exactly like a wrong password.
    A deactivated account is reported as such only when
    ``disclose_deactivated`` is set.
    """
    if user.is_deleted or not user.is_active:
        if disclose_deactivated:
            raise AccountDeactivated()
        raise InvalidCredentials()
    if not user.is_signup_complete:
        raise InvalidCredentials()
    if require_verified and not user.is_verified:
        raise InvalidCredentials()


def ensure_can_complete_step_two(user: User) -> None:
    if not user.step_one_complete:
        raise PreconditionFailed("Step 1 must be completed first")
    if user.step_two_complete:
        raise PreconditionFailed("Registration already completed")


def complete_step_two(user: User, **profile) -> None:
    for key, value in profile.items():
        setattr(user, key, value)
    user.step_two_complete = True


def ensure_can_deactivate(user: User) -> None:
    if not user.is_active:
        raise PreconditionFailed("User account is already disabled")


def deactivate(user: User, now: datetime) -> None:
    user.is_active = False
    user.deleted_at = now


def ensure_can_reactivate(user: User) -> None:
    if user.is_active:
        raise PreconditionFailed("User account is already active")


def reactivate(user: User) -> None:
    user.is_active = True
    user.deleted_at = None


def ensure_can_verify_email(user: User) -> None:
    if user.is_verified:
        raise PreconditionFailed("Email is already verified")


def mark_verified(user: User, now: datetime) -> None:
    user.is_verified = True
    user.email_verified_at = now


def record_password_reset(user: User, password_hash: str, now: datetime) -> None:
    user.password_hash = password_hash
    user.password_reset_count = (user.password_reset_count or 0) + 1
    user.last_password_reset = now
