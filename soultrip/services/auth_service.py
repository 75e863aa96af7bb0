"""
Accounts: registration, password login, profile lookup and self-service edits.

Emails are stored lowercased, so lookups and the uniqueness check are
case-insensitive. Tokens carry only the user id; see core.security.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from soultrip.models.user import User
from soultrip.schemas.user import PasswordChange, ProfileUpdate, UserCreate, UserLogin
from soultrip.core.security import hash_password, verify_password, create_access_token
from soultrip.core.logging import get_logger

logger = get_logger(__name__)


async def _find_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """Create a participant or organizer account. 409 if the email is taken."""
    if await _find_by_email(db, user_data.email):
        logger.warning("registration_rejected", reason="email_exists", role=user_data.role)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=user_data.email.lower(),
        full_name=user_data.full_name.strip(),
        avatar_url=user_data.avatar_url,
        bio=user_data.bio,
        role=user_data.role,
        hashed_password=hash_password(user_data.password),
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Check the password and issue an access token.
    Unknown email and wrong password are indistinguishable (401).
    """
    user = await _find_by_email(db, login_data.email)
    if user is None or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_rejected", reason="bad_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning("login_rejected", reason="inactive", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return create_access_token(data={"sub": str(user.id)})


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def update_profile(db: AsyncSession, user: User, profile_data: ProfileUpdate) -> User:
    changes = profile_data.model_dump(exclude_unset=True)
    if "full_name" in changes:
        full_name = (changes["full_name"] or "").strip()
        if not full_name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="full_name cannot be cleared",
            )
        changes["full_name"] = full_name

    for field, value in changes.items():
        setattr(user, field, value)

    await db.flush()
    logger.info("profile_updated", user_id=user.id, fields=sorted(changes))
    return user


async def change_password(db: AsyncSession, user: User, password_data: PasswordChange) -> None:
    """Re-hash the password after checking the current one."""
    if not verify_password(password_data.current_password, user.hashed_password):
        logger.warning("password_change_rejected", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.hashed_password = hash_password(password_data.new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)
