"""
SQLAlchemy implementation of the booking store.

Each operation opens its own session and transaction, so a failure in one
step of a protocol never leaves another step's work half-applied. Driver
errors are translated into the store's typed errors here and nowhere else.
"""

from typing import Any, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soultrip.core.logging import get_logger
from soultrip.models.booking import Booking
from soultrip.services.interfaces.booking_store import (
    AccessDeniedError,
    BookingFilter,
    BookingStore,
    ConflictError,
    ReadError,
    WriteError,
)

logger = get_logger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"

PATCHABLE_COLUMNS = frozenset({"status", "payment_status"})


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the integrity error is a uniqueness violation (not FK/check)."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig)
    # SQLite reports constraint failures by message only
    return "UNIQUE constraint failed" in message or "duplicate key" in message


class SqlBookingStore(BookingStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        allow_delete: bool = True,
    ):
        self._session_factory = session_factory
        self.allow_delete = allow_delete

    @staticmethod
    def _apply_filters(stmt, filters: BookingFilter):
        if filters.id is not None:
            stmt = stmt.where(Booking.id == filters.id)
        if filters.tour_id is not None:
            stmt = stmt.where(Booking.tour_id == filters.tour_id)
        if filters.participant_id is not None:
            stmt = stmt.where(Booking.participant_id == filters.participant_id)
        if filters.status is not None:
            stmt = stmt.where(Booking.status == filters.status)
        if filters.status_not is not None:
            stmt = stmt.where(Booking.status != filters.status_not)
        return stmt

    async def _select_single_for_write(
        self, session: AsyncSession, filters: BookingFilter
    ) -> Optional[Booking]:
        if filters.is_empty():
            raise WriteError("Refusing to modify bookings without a filter")
        stmt = self._apply_filters(select(Booking), filters).with_for_update().limit(2)
        rows = (await session.execute(stmt)).scalars().all()
        if len(rows) > 1:
            raise WriteError(f"Expected a single booking, filter matched several: {filters}")
        return rows[0] if rows else None

    async def insert(
        self,
        tour_id: int,
        participant_id: int,
        status: str,
        payment_status: str,
    ) -> Booking:
        booking = Booking(
            tour_id=tour_id,
            participant_id=participant_id,
            status=status,
            payment_status=payment_status,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(booking)
                    await session.flush()
                    await session.refresh(booking)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    f"Booking already exists for tour {tour_id} and participant {participant_id}"
                ) from e
            raise WriteError(str(e.orig)) from e
        except (SQLAlchemyError, OSError) as e:
            raise WriteError(str(e)) from e
        return booking

    async def update(self, filters: BookingFilter, patch: Mapping[str, Any]) -> Optional[Booking]:
        unknown = set(patch) - PATCHABLE_COLUMNS
        if unknown:
            raise WriteError(f"Cannot patch booking columns: {sorted(unknown)}")

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    booking = await self._select_single_for_write(session, filters)
                    if booking is None:
                        return None
                    for column, value in patch.items():
                        setattr(booking, column, value)
                    await session.flush()
                    await session.refresh(booking)
        except IntegrityError as e:
            raise WriteError(str(e.orig)) from e
        except (SQLAlchemyError, OSError) as e:
            raise WriteError(str(e)) from e
        return booking

    async def delete(self, filters: BookingFilter) -> Optional[Booking]:
        if not self.allow_delete:
            raise AccessDeniedError("Deleting bookings is not permitted by the storage policy")

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    booking = await self._select_single_for_write(session, filters)
                    if booking is None:
                        return None
                    await session.delete(booking)
        except (SQLAlchemyError, OSError) as e:
            raise WriteError(str(e)) from e
        return booking

    async def count(self, filters: BookingFilter) -> int:
        stmt = self._apply_filters(select(func.count()).select_from(Booking), filters)
        try:
            async with self._session_factory() as session:
                total = (await session.execute(stmt)).scalar_one()
        except (SQLAlchemyError, OSError) as e:
            raise ReadError(str(e)) from e
        return int(total)

    async def find_one(self, filters: BookingFilter) -> Optional[Booking]:
        stmt = self._apply_filters(select(Booking), filters).order_by(Booking.id).limit(1)
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise ReadError(str(e)) from e
