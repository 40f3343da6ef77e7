"""
Auth API - 注册/登录/邮箱验证/密码重置端点
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from authgate.common.config import settings
from authgate.common.database import get_session
from authgate.common.exceptions import NotFound
from authgate.domains.user.models import User
from authgate.domains.user.schemas import UserProfile, UserResponse
from . import schemas
from .deps import get_current_user
from .service import AuthService, get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Signup
# =============================================================================

@router.post(
    "/signup/step1",
    response_model=schemas.StepOneSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="注册第一步",
)
async def signup_step_one(
    data: schemas.StepOneSignupRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    创建账号 (用户名、邮箱、密码)

    - **username**: 3-50 位字母、数字或下划线
    - **email**: 邮箱
    - **password**: 6-100 位
    """
    user_id = await auth_service.step_one_signup(
        session, data.username, data.email, data.password
    )
    return schemas.StepOneSignupResponse(user_id=user_id)


@router.post(
    "/signup/step2/{user_id}",
    response_model=schemas.StepTwoSignupResponse,
    summary="注册第二步",
)
async def signup_step_two(
    user_id: str,
    data: schemas.StepTwoSignupRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """补全资料并发送邮箱验证码"""
    return await auth_service.step_two_signup(session, user_id, data)


# =============================================================================
# Signin / Token
# =============================================================================

@router.post("/signin", response_model=schemas.SigninResponse, summary="登录")
async def signin(
    data: schemas.SigninRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """使用用户名或邮箱登录"""
    return await auth_service.signin(session, data.identifier, data.password)


@router.post("/verify-token", response_model=schemas.VerifyTokenResponse)
async def verify_token(
    data: schemas.VerifyTokenRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.verify_token(session, data.token)


@router.get("/me", response_model=UserResponse, summary="当前用户")
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse(user=UserProfile.model_validate(current_user))


# =============================================================================
# Email verification
# =============================================================================

@router.post("/request-email-verification", response_model=schemas.OtpIssuedResponse)
async def request_email_verification(
    data: schemas.EmailRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.request_email_verification(session, data.email)


@router.post("/verify-email", response_model=schemas.MessageResponse)
async def verify_email(
    data: schemas.VerifyEmailRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.verify_email(session, data.otp_id, data.code)
    return schemas.MessageResponse(message="Email verified successfully")


@router.post("/resend-email-verification", response_model=schemas.OtpIssuedResponse)
async def resend_email_verification(
    data: schemas.ResendVerificationRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    otp_id = await auth_service.resend_email_verification(session, data.otp_id)
    return schemas.OtpIssuedResponse(otp_id=otp_id, message="Verification code resent")


# =============================================================================
# Password reset
# =============================================================================

@router.post("/forgot-password", response_model=schemas.OtpIssuedResponse)
async def forgot_password(
    data: schemas.EmailRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.forgot_password(session, data.email)


@router.post("/reset-password", response_model=schemas.MessageResponse)
async def reset_password(
    data: schemas.ResetPasswordRequest,
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.reset_password(session, data.otp_id, data.code, data.new_password)
    return schemas.MessageResponse(message="Password reset successfully")


# =============================================================================
# Development
# =============================================================================

@router.get("/dev/active-otps", response_model=schemas.ActiveOtpList, include_in_schema=False)
async def list_active_otps(auth_service: AuthService = Depends(get_auth_service)):
    """列出当前有效的验证码 (仅 debug 模式)"""
    if not settings.debug:
        raise NotFound("Not Found")
    return schemas.ActiveOtpList(otps=await auth_service.active_otps())
