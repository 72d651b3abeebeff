from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from villa_booking.db.models.user import UserRole

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    firstname: str
    lastname: str
    role: UserRole
    is_active: bool
    admin_validated: bool
    color_preference: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserProfileUpdateRequest(BaseModel):
    firstname: str | None = Field(default=None, min_length=1, max_length=100)
    lastname: str | None = Field(default=None, min_length=1, max_length=100)
    color_preference: str | None = Field(default=None, pattern=COLOR_PATTERN)


class UserRoleUpdateRequest(BaseModel):
    role: UserRole


class UserRoleChangeResponse(BaseModel):
    user: UserResponse
    old_role: UserRole
    new_role: UserRole
