"""User domain Pydantic schemas."""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class UserProfile(BaseModel):
    """Public profile; never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    college: Optional[str] = None
    address: Optional[str] = None
    step_one_complete: bool
    step_two_complete: bool
    is_verified: bool
    email_verified_at: Optional[datetime] = None
    is_active: bool
    password_reset_count: int = 0
    last_password_reset: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AdminUserView(BaseModel):
    """User row as shown in the admin listing (includes deletion state)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    college: Optional[str] = None
    address: Optional[str] = None
    is_verified: bool
    is_active: bool
    step_one_complete: bool
    step_two_complete: bool
    created_at: datetime
    deleted_at: Optional[datetime] = None


class UserSummary(BaseModel):
    """Short form returned by deactivate/reactivate."""

    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    is_active: bool


class UserUpdate(BaseModel):
    """Owner-editable fields."""

    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    full_name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)
    college: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class UserListQuery(BaseModel):
    """Admin listing options."""

    page: int = 1
    limit: int = 10
    verified: Optional[bool] = None
    active: Optional[bool] = None
    search: Optional[str] = Field(None, max_length=100)
    search_field: Literal["username", "email", "full_name", "college", "all"] = "all"
    sort_by: Literal[
        "username", "email", "full_name", "created_at", "is_verified", "is_active"
    ] = "created_at"
    sort_order: Literal["asc", "desc", "ASC", "DESC"] = "desc"


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class UserListResponse(BaseModel):
    users: List[AdminUserView]
    pagination: Pagination


class UserResponse(BaseModel):
    user: Optional[UserProfile] = None
