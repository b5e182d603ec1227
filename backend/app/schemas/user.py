"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from pydantic import EmailStr, Field

from app.schemas.common import APIModel


class UserCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class UserLogin(APIModel):
    email: EmailStr
    password: str


class UserSummary(APIModel):
    id: int
    name: str
    email: str


class UserResponse(UserSummary):
    role: str
    is_active: bool
    created_at: datetime


class AuthPayload(APIModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse
