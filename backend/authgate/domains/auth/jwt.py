"""
JWT Token Utilities - JWT生成和验证
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import jwt, JWTError
import logging

from authgate.common.exceptions import InvalidToken

logger = logging.getLogger(__name__)

# JWT Configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

TOKEN_TYPE_USER = "user"
TOKEN_TYPE_ADMIN = "admin"


class TokenIssuer:
    """Signs and verifies expiring bearer tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = ALGORITHM,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """创建JWT access token"""
        to_encode = claims.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"iat": now, "exp": expire})
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify(self, token: str, token_type: Optional[str] = None) -> Dict[str, Any]:
        """验证JWT token并返回payload; any failure is InvalidToken."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug(f"JWT verification failed: {e}")
            raise InvalidToken()

        if not payload.get("sub"):
            raise InvalidToken()
        if token_type is not None and payload.get("typ") != token_type:
            raise InvalidToken()
        return payload


_issuer: Optional[TokenIssuer] = None


def get_token_issuer() -> TokenIssuer:
    global _issuer
    if _issuer is None:
        from authgate.common.config import settings
        _issuer = TokenIssuer(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.jwt_expire_minutes,
        )
    return _issuer
