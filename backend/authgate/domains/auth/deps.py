"""
Auth Dependencies - 依赖注入函数
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from authgate.common.database import get_session
from authgate.common.exceptions import InvalidToken
from authgate.domains.user.models import User
from .service import AuthService, get_auth_service

logger = logging.getLogger(__name__)


def get_bearer_token(request: Request) -> Optional[str]:
    """从 Authorization header 读取 Bearer token"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def require_bearer_token(token: Optional[str] = Depends(get_bearer_token)) -> str:
    if not token:
        raise InvalidToken("Missing bearer token")
    return token


async def get_current_user(
    token: str = Depends(require_bearer_token),
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """获取当前用户（必须登录，否则401）"""
    return await auth_service.authenticate(session, token)
