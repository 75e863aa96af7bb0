"""
Public user profiles.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.db.session import get_db
from soultrip.schemas.user import PublicProfile
from soultrip.services.auth_service import get_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}", response_model=PublicProfile)
async def get_profile(user_id: int, db: AsyncSession = Depends(get_db)):
    """Name, avatar and role of any user. Email is never exposed here."""
    return await get_user(db, user_id)
