"""Auth domain Pydantic schemas."""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from authgate.domains.user.schemas import UserProfile

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


# ============================================================================
# Requests
# ============================================================================

class StepOneSignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)


class StepTwoSignupRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)
    college: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class SigninRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class VerifyTokenRequest(BaseModel):
    token: str


class EmailRequest(BaseModel):
    email: EmailStr


class VerifyEmailRequest(BaseModel):
    otp_id: str
    code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class ResendVerificationRequest(BaseModel):
    otp_id: str


class ResetPasswordRequest(BaseModel):
    otp_id: str
    code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=6, max_length=100)


# ============================================================================
# Responses
# ============================================================================

class StepOneSignupResponse(BaseModel):
    user_id: str
    message: str = "Step 1 completed. Please complete step 2 to finish registration."


class StepTwoSignupResponse(BaseModel):
    access_token: str
    user: UserProfile
    verification_otp_id: str
    message: str = (
        "Registration completed! Please check your email to verify your account before signing in."
    )


class SigninResponse(BaseModel):
    access_token: str
    user: UserProfile


class VerifyTokenResponse(BaseModel):
    valid: bool
    user: Optional[UserProfile] = None


class OtpIssuedResponse(BaseModel):
    """Same shape whether or not a code was actually sent."""

    otp_id: str
    message: str


class MessageResponse(BaseModel):
    message: str


class ActiveOtp(BaseModel):
    id: str
    email: str
    code: str
    kind: str
    expires_at: datetime
    attempts: int


class ActiveOtpList(BaseModel):
    otps: List[ActiveOtp]
