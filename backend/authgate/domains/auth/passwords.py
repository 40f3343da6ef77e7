"""
Password hashing - bcrypt
"""

import logging
from typing import Optional

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only ever looks at the first 72 bytes; newer releases raise instead
# of truncating, so the cut is made here explicitly.
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, deliberately slow password digests."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed digest in storage; treat as a mismatch.
            logger.warning("Stored password hash is not a valid bcrypt digest")
            return False


_hasher: Optional[PasswordHasher] = None


def get_password_hasher() -> PasswordHasher:
    global _hasher
    if _hasher is None:
        from authgate.common.config import settings
        _hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    return _hasher


def hash_password(password: str) -> str:
    return get_password_hasher().hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    return get_password_hasher().verify(password, password_hash)
