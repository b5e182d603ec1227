"""
Authentication endpoints: register, login and the current user.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import DataResponse
from app.schemas.user import AuthPayload, UserCreate, UserLogin, UserResponse
from app.services.auth_service import authenticate_user, issue_token, register_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=DataResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user account and sign it in."""
    user = await register_user(db, user_data)
    payload = AuthPayload(token=issue_token(user), user=UserResponse.model_validate(user))
    return DataResponse(data=payload)


@router.post("/login", response_model=DataResponse[AuthPayload])
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    user, token = await authenticate_user(db, login_data)
    return DataResponse(data=AuthPayload(token=token, user=UserResponse.model_validate(user)))


@router.get("/me", response_model=DataResponse[UserResponse])
async def me(user: User = Depends(get_current_user)):
    return DataResponse(data=UserResponse.model_validate(user))
