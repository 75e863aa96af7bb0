"""
Shared FastAPI dependencies: current user, viewer identity, booking store,
outbound HTTP client.
"""

from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.core.config import get_settings
from soultrip.core.security import get_current_user_id, get_optional_user_id
from soultrip.db.session import get_db, get_sessionmaker
from soultrip.infrastructure.sql_booking_store import SqlBookingStore
from soultrip.models.user import User
from soultrip.services.booking_orchestrator import BookingOrchestrator, Viewer
from soultrip.services.interfaces.booking_store import BookingStore


async def _load_active_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await _load_active_user(db, user_id)


async def get_optional_viewer(
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
) -> Optional[Viewer]:
    if user_id is None:
        return None
    user = await _load_active_user(db, user_id)
    return Viewer(user_id=user.id, role=user.role)


async def get_viewer(user: User = Depends(get_current_user)) -> Viewer:
    return Viewer(user_id=user.id, role=user.role)


def get_booking_store() -> BookingStore:
    return SqlBookingStore(
        get_sessionmaker(),
        allow_delete=get_settings().BOOKING_HARD_DELETE_ENABLED,
    )


def get_orchestrator(store: BookingStore = Depends(get_booking_store)) -> BookingOrchestrator:
    return BookingOrchestrator(store)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(timeout=get_settings().INFERENCE_TIMEOUT_SECONDS) as client:
        yield client
