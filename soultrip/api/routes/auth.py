"""
Authentication endpoints: register, login and the current user's account.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.api.deps import get_current_user
from soultrip.db.session import get_db
from soultrip.models.user import User
from soultrip.schemas.user import (
    PasswordChange,
    ProfileUpdate,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
)
from soultrip.services.auth_service import (
    authenticate_user,
    change_password,
    register_user,
    update_profile,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a participant or organizer account."""
    user = await register_user(db, user_data)
    return user


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    profile_data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit name, bio and avatar. Email and role are not editable here."""
    return await update_profile(db, user, profile_data)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_my_password(
    password_data: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, user, password_data)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
