"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserCreate(UserBase):
    """Schema for creating a new user."""
    role_id: int | None = Field(None, description="Role to assign on creation")


class UserResponse(UserBase):
    """Schema for user responses."""
    id: int
    is_active: bool
    role_id: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleAssignment(BaseModel):
    """Schema for giving a user its role."""
    role_id: int = Field(..., description="Role ID")


class RoleCheckResponse(BaseModel):
    """Result of checking a user's role."""
    user_id: int
    role: str
    allowed: bool
