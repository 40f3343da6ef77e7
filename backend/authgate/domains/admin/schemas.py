"""
Admin domain Pydantic schemas - 请求/响应模型
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from authgate.domains.admin.models import AdminRole


# ============================================================================
# Admin Schemas
# ============================================================================


class AdminLoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class AdminLoginResponse(BaseModel):
    access_token: str
    role: int


class CreateAdminRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    role: AdminRole = Field(AdminRole.ADMIN, description="0 = super admin, 1 = admin")


class AdminProfile(BaseModel):
    """不含 password_hash"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    username: str
    role: int
    created_at: datetime
    updated_at: datetime


class AdminListResponse(BaseModel):
    admins: List[AdminProfile]


# ============================================================================
# User management Schemas
# ============================================================================


class UserStatusChangeRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
