"""
Tour service: organizer CRUD and the published listing.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from soultrip.models.booking import Booking, BookingStatus
from soultrip.models.tour import Tour, TourImage, TourStatus
from soultrip.models.user import User, UserRole
from soultrip.schemas.tour import SORT_OPTIONS, TourCreate, TourFilters, TourImageIn, TourUpdate
from soultrip.core.logging import get_logger

logger = get_logger(__name__)


def _build_images(images: list[TourImageIn]) -> list[TourImage]:
    return [
        TourImage(image_url=image.image_url, alt_text=image.alt_text, position=position)
        for position, image in enumerate(images)
    ]


def _not_found(tour_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Tour {tour_id} not found",
    )


async def create_tour(db: AsyncSession, tour_data: TourCreate, organizer: User) -> Tour:
    """Create a tour owned by the organizer. Tours start as drafts unless told otherwise."""
    if not organizer.can_manage_tours:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organizers can create tours",
        )

    tour = Tour(
        organizer_id=organizer.id,
        organizer_name=organizer.full_name,
        title=tour_data.title,
        description=tour_data.description,
        itinerary=tour_data.itinerary,
        start_date=tour_data.start_date,
        end_date=tour_data.end_date,
        price=tour_data.price,
        currency=tour_data.currency,
        max_participants=tour_data.max_participants,
        status=tour_data.status.value,
        country=tour_data.country,
        difficulty=tour_data.difficulty.value if tour_data.difficulty else None,
        images=_build_images(tour_data.images),
    )
    db.add(tour)
    await db.flush()

    logger.info(
        "tour_created",
        tour_id=tour.id,
        organizer_id=organizer.id,
        status=tour.status,
        max_participants=tour.max_participants,
    )
    return tour


async def get_tour(db: AsyncSession, tour_id: int) -> Tour:
    result = await db.execute(select(Tour).where(Tour.id == tour_id))
    tour = result.scalar_one_or_none()
    if not tour:
        raise _not_found(tour_id)
    return tour


async def get_visible_tour(db: AsyncSession, tour_id: int, viewer_id: Optional[int]) -> Tour:
    """
    Published tours are public. Drafts and archived tours are only visible to
    their organizer; everyone else gets a 404.
    """
    tour = await get_tour(db, tour_id)
    if not tour.is_published and tour.organizer_id != viewer_id:
        raise _not_found(tour_id)
    return tour


async def get_managed_tour(db: AsyncSession, tour_id: int, user: User) -> Tour:
    """A tour the user may modify: their own, or any tour for an admin."""
    tour = await get_tour(db, tour_id)
    if tour.organizer_id != user.id and user.role != UserRole.ADMIN.value:
        logger.warning("tour_access_denied", tour_id=tour_id, user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own tours",
        )
    return tour


async def update_tour(db: AsyncSession, tour: Tour, tour_data: TourUpdate) -> Tour:
    changes = tour_data.model_dump(exclude_unset=True)

    start_date = changes.get("start_date", tour.start_date)
    end_date = changes.get("end_date", tour.end_date)
    if start_date is None or end_date is None or end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )

    for field in ("title", "price", "currency", "max_participants", "status"):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be cleared",
            )

    images = changes.pop("images", None)
    if images is not None:
        tour.images = _build_images(tour_data.images)

    for field, value in changes.items():
        if field in ("status", "difficulty") and value is not None:
            value = value.value if hasattr(value, "value") else value
        setattr(tour, field, value)

    await db.flush()
    logger.info("tour_updated", tour_id=tour.id, fields=sorted(tour_data.model_fields_set))
    return tour


async def delete_tour(db: AsyncSession, tour: Tour) -> None:
    """Delete a tour together with its images and bookings."""
    bookings_deleted = await db.execute(delete(Booking).where(Booking.tour_id == tour.id))
    await db.delete(tour)
    await db.flush()
    logger.info("tour_deleted", tour_id=tour.id, bookings_deleted=bookings_deleted.rowcount)


async def list_published_tours(
    db: AsyncSession,
    filters: TourFilters,
    page: int = 1,
    page_size: int = 9,
) -> tuple[list[Tour], int]:
    """
    Published tours matching the filters, one page at a time.
    Uses ix_tours_status_start_date for the status + date range filter.
    """
    query = select(Tour).where(Tour.status == TourStatus.PUBLISHED.value)

    if filters.start_date:
        query = query.where(Tour.start_date >= filters.start_date)
    if filters.end_date:
        query = query.where(Tour.end_date <= filters.end_date)
    if filters.countries:
        query = query.where(Tour.country.in_(filters.countries))
    if filters.difficulty:
        query = query.where(Tour.difficulty == filters.difficulty.value)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    column_name, ascending = SORT_OPTIONS[filters.sort]
    column = getattr(Tour, column_name)
    order = column.asc() if ascending else column.desc()

    tours_query = (
        query
        .order_by(order, Tour.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(tours_query)
    tours = list(result.scalars().all())

    return tours, total


async def count_active_bookings_by_tour(db: AsyncSession, tour_ids: list[int]) -> dict[int, int]:
    """Non-cancelled bookings per tour in one grouped query. Tours without bookings are absent."""
    if not tour_ids:
        return {}
    result = await db.execute(
        select(Booking.tour_id, func.count(Booking.id))
        .where(
            Booking.tour_id.in_(tour_ids),
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .group_by(Booking.tour_id)
    )
    return {tour_id: count for tour_id, count in result.all()}


async def list_organizer_tours(db: AsyncSession, organizer_id: int) -> list[Tour]:
    """All of an organizer's tours, any status, newest first."""
    result = await db.execute(
        select(Tour)
        .where(Tour.organizer_id == organizer_id)
        .order_by(Tour.created_at.desc(), Tour.id.desc())
    )
    return list(result.scalars().all())
