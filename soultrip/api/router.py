"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from soultrip.api.routes import auth, users, tours, bookings, search

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(tours.router)
api_router.include_router(bookings.router)
api_router.include_router(search.router)
