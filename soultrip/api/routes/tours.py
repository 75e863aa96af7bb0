"""
Tour endpoints: listing (Redis-cached), organizer CRUD, roster and bookings
table, and the per-tour booking panel.

Listing pages carry availability, so the cache is dropped after any
committed tour change and after every successful book or cancel.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.api.deps import get_current_user, get_optional_viewer, get_orchestrator, get_viewer
from soultrip.db.session import get_db
from soultrip.models.tour import TourDifficulty
from soultrip.models.user import User
from soultrip.schemas.booking import BookingPanelResponse, ParticipantResponse, TourBookingResponse
from soultrip.schemas.tour import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT,
    SortKey,
    TourCreate,
    TourFilters,
    TourListResponse,
    TourListItem,
    TourResponse,
    TourUpdate,
)
from soultrip.services.booking_orchestrator import (
    BookingActionResult,
    BookingOrchestrator,
    BookingPanelState,
    Eligibility,
    Viewer,
    resolve_eligibility,
)
from soultrip.services.booking_service import (
    BookingNotFound,
    BookingOutcomeKind,
    get_tour_bookings,
    get_tour_roster,
)
from soultrip.services.capacity_service import is_sold_out
from soultrip.services.cache_service import get_cached_tours, set_cached_tours, invalidate_tour_cache
from soultrip.services.interfaces.booking_store import ConflictError
from soultrip.services.tour_service import (
    count_active_bookings_by_tour,
    create_tour,
    delete_tour,
    get_managed_tour,
    get_tour,
    get_visible_tour,
    list_organizer_tours,
    list_published_tours,
    update_tour,
)
from soultrip.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tours", tags=["Tours"])

REFUSAL_STATUS = {
    Eligibility.SIGN_IN_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    Eligibility.WRONG_ROLE: status.HTTP_403_FORBIDDEN,
    Eligibility.UNAVAILABLE: status.HTTP_404_NOT_FOUND,
    Eligibility.ALREADY_BOOKED: status.HTTP_409_CONFLICT,
    Eligibility.SOLD_OUT: status.HTTP_409_CONFLICT,
}


def _panel_response(
    state: BookingPanelState,
    eligibility: Eligibility,
    outcome: Optional[str] = None,
) -> BookingPanelResponse:
    return BookingPanelResponse(
        tour_id=state.tour_id,
        max_participants=state.max_participants,
        current_bookings=state.current_bookings,
        is_sold_out=state.is_sold_out,
        my_booking_id=state.my_booking_id,
        eligibility=eligibility.value,
        message=state.message,
        outcome=outcome,
    )


def _listing_item(tour, current_bookings: int) -> dict:
    item = TourListItem.model_validate(tour).model_copy(update={
        "current_bookings": current_bookings,
        "is_sold_out": is_sold_out(current_bookings, tour.max_participants),
    })
    return item.model_dump(mode="json")


def _raise_for_refusal(result: BookingActionResult) -> None:
    if result.outcome is None:
        raise HTTPException(
            status_code=REFUSAL_STATUS.get(result.eligibility, status.HTTP_409_CONFLICT),
            detail=result.state.message,
        )


@router.get("/", response_model=TourListResponse)
async def list_tours_endpoint(
    start_date: Optional[date] = Query(None, description="Tours starting on or after"),
    end_date: Optional[date] = Query(None, description="Tours ending on or before"),
    countries: list[str] = Query([]),
    difficulty: Optional[TourDifficulty] = Query(None),
    sort: SortKey = Query(DEFAULT_SORT),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """
    Published tours with filters, sorting and pagination.
    Pages are cached in Redis until a tour or a booking changes, or the TTL
    expires.
    """
    filters = TourFilters(
        start_date=start_date,
        end_date=end_date,
        countries=countries,
        difficulty=difficulty,
        sort=sort,
    )

    cached = await get_cached_tours(filters, page, page_size)
    if cached:
        cached["cached"] = True
        return TourListResponse(**cached)

    tours, total = await list_published_tours(db, filters, page, page_size)
    booked = await count_active_bookings_by_tour(db, [t.id for t in tours])
    response_data = {
        "tours": [_listing_item(t, booked.get(t.id, 0)) for t in tours],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_tours(filters, page, page_size, response_data)

    return TourListResponse(**response_data)


@router.post("/", response_model=TourResponse, status_code=status.HTTP_201_CREATED)
async def create_tour_endpoint(
    tour_data: TourCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a tour. Organizers only; starts as a draft by default."""
    tour = await create_tour(db, tour_data, user)
    await db.commit()
    await invalidate_tour_cache()
    return tour


@router.get("/mine", response_model=list[TourResponse])
async def list_my_tours(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own tours in every status."""
    return await list_organizer_tours(db, user.id)


@router.get("/{tour_id}", response_model=TourResponse)
async def get_tour_endpoint(
    tour_id: int,
    viewer: Optional[Viewer] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    """A published tour, or the caller's own draft. Not cached."""
    return await get_visible_tour(db, tour_id, viewer.user_id if viewer else None)


@router.patch("/{tour_id}", response_model=TourResponse)
async def update_tour_endpoint(
    tour_id: int,
    tour_data: TourUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tour = await get_managed_tour(db, tour_id, user)
    tour = await update_tour(db, tour, tour_data)
    await db.commit()
    await invalidate_tour_cache()
    return tour


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tour_endpoint(
    tour_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a tour with its images and bookings."""
    tour = await get_managed_tour(db, tour_id, user)
    await delete_tour(db, tour)
    await db.commit()
    await invalidate_tour_cache()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tour_id}/participants", response_model=list[ParticipantResponse])
async def list_tour_participants(
    tour_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Roster of active bookings, for the tour's organizer."""
    tour = await get_managed_tour(db, tour_id, user)
    return await get_tour_roster(db, tour.id)


@router.get("/{tour_id}/bookings", response_model=list[TourBookingResponse])
async def list_tour_bookings(
    tour_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every booking on the tour with its participant, cancelled ones included."""
    tour = await get_managed_tour(db, tour_id, user)
    return await get_tour_bookings(db, tour.id)


@router.get("/{tour_id}/booking", response_model=BookingPanelResponse)
async def get_booking_panel(
    tour_id: int,
    viewer: Optional[Viewer] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Capacity, the caller's booking and whether they may book."""
    tour = await get_visible_tour(db, tour_id, viewer.user_id if viewer else None)
    state = await orchestrator.load(tour, viewer)
    return _panel_response(state, resolve_eligibility(viewer, tour, state))


@router.post(
    "/{tour_id}/booking",
    response_model=BookingPanelResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_tour(
    tour_id: int,
    response: Response,
    viewer: Viewer = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Book the tour for the caller.

    201 for a new booking, 200 when a previously cancelled booking was
    re-activated. The returned count already includes the new booking.
    """
    tour = await get_visible_tour(db, tour_id, viewer.user_id)
    state = await orchestrator.load(tour, viewer)
    result = await orchestrator.book(state, tour, viewer)
    _raise_for_refusal(result)

    outcome = result.outcome
    if not outcome.succeeded:
        raise HTTPException(
            status_code=(
                status.HTTP_409_CONFLICT
                if isinstance(outcome.error, ConflictError)
                else status.HTTP_503_SERVICE_UNAVAILABLE
            ),
            detail=result.state.message,
        )

    await invalidate_tour_cache()
    if outcome.kind is BookingOutcomeKind.REACTIVATED:
        response.status_code = status.HTTP_200_OK
    return _panel_response(result.state, result.eligibility, outcome.kind.value)


@router.delete("/{tour_id}/booking", response_model=BookingPanelResponse)
async def cancel_tour_booking(
    tour_id: int,
    viewer: Viewer = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Cancel the caller's active booking on this tour.

    Works after the tour has gone back to draft or been archived, as long as
    the caller still holds a booking on it.
    """
    tour = await get_tour(db, tour_id)
    state = await orchestrator.load(tour, viewer)
    if state.my_booking_id is None and not tour.is_published and tour.organizer_id != viewer.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tour {tour_id} not found")

    result = await orchestrator.cancel(state, tour, viewer)
    if result.outcome is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.state.message)

    outcome = result.outcome
    if not outcome.succeeded:
        raise HTTPException(
            status_code=(
                status.HTTP_404_NOT_FOUND
                if isinstance(outcome.error, BookingNotFound)
                else status.HTTP_503_SERVICE_UNAVAILABLE
            ),
            detail=result.state.message,
        )
    await invalidate_tour_cache()
    return _panel_response(result.state, result.eligibility, outcome.kind.value)
