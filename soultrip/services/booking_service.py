"""
Booking lifecycle: create, reactivate and cancel bookings.

UNIQUENESS AS A GATE
====================

Problem:
  A participant may hold at most one active booking per tour. A double
  submit, a stale page or two tabs can all send a second "book" request.

Solution:
  The (tour_id, participant_id) unique constraint is the gate. Creation
  always tries a plain insert first:

  1. INSERT a pending/unpaid booking -> created
  2. On a uniqueness conflict, UPDATE the participant's *cancelled* row for
     that tour back to pending/unpaid -> reactivated
  3. Conflict but no cancelled row means an active booking already exists
     -> error (logged as an anomaly, the caller's existence check missed it)

  This saves a "do I have an old cancelled booking?" round trip on the
  common path and never produces a second row.

Cancellation is two-pathed because the storage access policy may allow
updates but not deletes:

  1. DELETE the row scoped to (id, participant) -> deleted
  2. Otherwise UPDATE status to cancelled, scoped to (id, participant) and
     status != cancelled -> soft_cancelled
  3. Both fail -> error

Protocol failures are returned as outcome values, never raised. There are
no retries here; the user re-invokes the action. Steps are not wrapped in a
shared transaction: each is a single atomic store call and safe to observe
on its own.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from soultrip.core.logging import get_logger
from soultrip.models.booking import Booking, BookingStatus, PaymentStatus
from soultrip.models.user import User
from soultrip.services.interfaces.booking_store import (
    BookingFilter,
    BookingStore,
    ConflictError,
    StoreError,
)

logger = get_logger(__name__)


class BookingNotFound(LookupError):
    """No booking matched the ownership-scoped filter."""


class BookingOutcomeKind(str, enum.Enum):
    CREATED = "created"
    REACTIVATED = "reactivated"
    ERROR = "error"


@dataclass(frozen=True)
class BookingOutcome:
    """
    Result of a create/reactivate attempt. Branch on `kind`: both success
    kinds carry a booking id.
    """

    kind: BookingOutcomeKind
    booking_id: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is not BookingOutcomeKind.ERROR

    @classmethod
    def created(cls, booking_id: int) -> "BookingOutcome":
        return cls(BookingOutcomeKind.CREATED, booking_id=booking_id)

    @classmethod
    def reactivated(cls, booking_id: int) -> "BookingOutcome":
        return cls(BookingOutcomeKind.REACTIVATED, booking_id=booking_id)

    @classmethod
    def failed(cls, error: Exception) -> "BookingOutcome":
        return cls(BookingOutcomeKind.ERROR, error=error)


class CancellationOutcomeKind(str, enum.Enum):
    DELETED = "deleted"
    SOFT_CANCELLED = "soft_cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class CancellationOutcome:
    kind: CancellationOutcomeKind
    booking_id: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is not CancellationOutcomeKind.ERROR

    @classmethod
    def deleted(cls, booking_id: int) -> "CancellationOutcome":
        return cls(CancellationOutcomeKind.DELETED, booking_id=booking_id)

    @classmethod
    def soft_cancelled(cls, booking_id: int) -> "CancellationOutcome":
        return cls(CancellationOutcomeKind.SOFT_CANCELLED, booking_id=booking_id)

    @classmethod
    def failed(cls, error: Exception) -> "CancellationOutcome":
        return cls(CancellationOutcomeKind.ERROR, error=error)


async def find_active_booking_id(
    store: BookingStore,
    tour_id: int,
    participant_id: Optional[int],
) -> Optional[int]:
    """
    The participant's non-cancelled booking id for the tour, or None.
    Anonymous callers get None without a query. Read errors propagate.
    """
    if participant_id is None:
        return None

    booking = await store.find_one(
        BookingFilter(
            tour_id=tour_id,
            participant_id=participant_id,
            status_not=BookingStatus.CANCELLED.value,
        )
    )
    return booking.id if booking else None


async def create_or_reactivate_booking(
    store: BookingStore,
    tour_id: int,
    participant_id: int,
) -> BookingOutcome:
    """
    Book a tour for a participant.
    Preconditions (role, published, capacity) are checked by the caller.
    """
    try:
        booking = await store.insert(
            tour_id=tour_id,
            participant_id=participant_id,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
        )
    except ConflictError as conflict:
        return await _reactivate_cancelled_booking(store, tour_id, participant_id, conflict)
    except StoreError as e:
        logger.warning(
            "booking_create_failed",
            tour_id=tour_id,
            participant_id=participant_id,
            error=str(e),
        )
        return BookingOutcome.failed(e)

    logger.info(
        "booking_created",
        booking_id=booking.id,
        tour_id=tour_id,
        participant_id=participant_id,
    )
    return BookingOutcome.created(booking.id)


async def _reactivate_cancelled_booking(
    store: BookingStore,
    tour_id: int,
    participant_id: int,
    conflict: ConflictError,
) -> BookingOutcome:
    try:
        booking = await store.update(
            BookingFilter(
                tour_id=tour_id,
                participant_id=participant_id,
                status=BookingStatus.CANCELLED.value,
            ),
            {
                "status": BookingStatus.PENDING.value,
                "payment_status": PaymentStatus.UNPAID.value,
            },
        )
    except StoreError as e:
        logger.warning(
            "booking_reactivation_failed",
            tour_id=tour_id,
            participant_id=participant_id,
            error=str(e),
        )
        return BookingOutcome.failed(e)

    if booking is None:
        # The insert conflicted, so a row exists; none is cancelled, so it is active.
        logger.error(
            "booking_state_inconsistent",
            tour_id=tour_id,
            participant_id=participant_id,
            reason="conflict_without_cancelled_row",
        )
        return BookingOutcome.failed(conflict)

    logger.info(
        "booking_reactivated",
        booking_id=booking.id,
        tour_id=tour_id,
        participant_id=participant_id,
    )
    return BookingOutcome.reactivated(booking.id)


async def cancel_booking(
    store: BookingStore,
    booking_id: int,
    participant_id: int,
) -> CancellationOutcome:
    """
    Cancel the participant's own booking. Tries a hard delete, then falls
    back to marking the row cancelled.
    """
    owned = BookingFilter(id=booking_id, participant_id=participant_id)

    try:
        deleted = await store.delete(owned)
    except StoreError as e:
        logger.info("booking_hard_delete_failed", booking_id=booking_id, reason=str(e))
    else:
        if deleted is not None:
            logger.info(
                "booking_cancelled",
                booking_id=booking_id,
                participant_id=participant_id,
                tour_id=deleted.tour_id,
                mode="deleted",
            )
            return CancellationOutcome.deleted(deleted.id)
        logger.info("booking_hard_delete_failed", booking_id=booking_id, reason="no_matching_row")

    try:
        cancelled = await store.update(
            BookingFilter(
                id=booking_id,
                participant_id=participant_id,
                status_not=BookingStatus.CANCELLED.value,
            ),
            {"status": BookingStatus.CANCELLED.value},
        )
    except StoreError as e:
        logger.warning("booking_cancel_failed", booking_id=booking_id, error=str(e))
        return CancellationOutcome.failed(e)

    if cancelled is None:
        logger.warning(
            "booking_cancel_failed",
            booking_id=booking_id,
            participant_id=participant_id,
            reason="not_found_or_already_cancelled",
        )
        return CancellationOutcome.failed(
            BookingNotFound(f"No active booking {booking_id} for participant {participant_id}")
        )

    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        participant_id=participant_id,
        tour_id=cancelled.tour_id,
        mode="soft",
    )
    return CancellationOutcome.soft_cancelled(cancelled.id)


async def get_participant_bookings(db: AsyncSession, participant_id: int) -> list[Booking]:
    """Active bookings for a participant, newest first, with their tours loaded."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.tour))
        .where(
            Booking.participant_id == participant_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_booked_tour_ids(db: AsyncSession, participant_id: int) -> list[int]:
    result = await db.execute(
        select(Booking.tour_id).where(
            Booking.participant_id == participant_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return list(result.scalars().all())


async def get_participant_booking(db: AsyncSession, booking_id: int, participant_id: int) -> Booking:
    """A single booking owned by the participant. 404 for anyone else's."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.tour))
        .where(Booking.id == booking_id, Booking.participant_id == participant_id)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    return booking


async def get_tour_roster(db: AsyncSession, tour_id: int) -> list[User]:
    """Participants holding an active booking on the tour, in booking order."""
    result = await db.execute(
        select(User)
        .join(Booking, Booking.participant_id == User.id)
        .where(
            Booking.tour_id == tour_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .order_by(Booking.created_at.asc(), Booking.id.asc())
    )
    return list(result.scalars().all())


async def get_tour_bookings(db: AsyncSession, tour_id: int) -> list[Booking]:
    """Every booking on the tour, cancelled ones included, newest first."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.participant))
        .where(Booking.tour_id == tour_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
