"""
Participant booking endpoints: the caller's bookings and cancellation by id.
Booking itself happens on /tours/{tour_id}/booking.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.api.deps import get_orchestrator, get_viewer
from soultrip.db.session import get_db
from soultrip.schemas.booking import BookingCancelResponse, BookingResponse
from soultrip.services.booking_orchestrator import MSG_CANCELLED, MSG_CANCEL_FAILED, BookingOrchestrator, Viewer
from soultrip.services.booking_service import (
    BookingNotFound,
    get_booked_tour_ids,
    get_participant_booking,
    get_participant_bookings,
)
from soultrip.services.cache_service import invalidate_tour_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=list[BookingResponse])
async def list_my_bookings(
    viewer: Viewer = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    """The caller's active bookings, newest first."""
    return await get_participant_bookings(db, viewer.user_id)


@router.get("/tour-ids", response_model=list[int])
async def list_my_booked_tour_ids(
    viewer: Viewer = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    """Ids of tours the caller holds an active booking on."""
    return await get_booked_tour_ids(db, viewer.user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_my_booking(
    booking_id: int,
    viewer: Viewer = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await get_participant_booking(db, booking_id, viewer.user_id)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    viewer: Viewer = Depends(get_viewer),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Cancel one of the caller's bookings. Bookings of other participants,
    and bookings that are already cancelled, answer 404.
    """
    outcome = await orchestrator.cancel_by_id(booking_id, viewer)
    if not outcome.succeeded:
        if isinstance(outcome.error, BookingNotFound):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=MSG_CANCEL_FAILED)

    await invalidate_tour_cache()
    return BookingCancelResponse(
        message=MSG_CANCELLED,
        booking_id=outcome.booking_id,
        outcome=outcome.kind.value,
    )
