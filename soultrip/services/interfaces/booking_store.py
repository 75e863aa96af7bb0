"""
Booking storage interface.

The booking protocols only talk to storage through these operations, so the
SQL store can be swapped (or wrapped with failure injection in tests) without
touching the lifecycle logic. Every operation is its own atomic unit of
work; nothing here spans more than one call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from soultrip.models.booking import Booking


class StoreError(Exception):
    """Base class for booking storage failures."""


class ReadError(StoreError):
    """A read could not be completed. The result is unknown, not empty."""


class WriteError(StoreError):
    """A write failed for a reason other than a uniqueness conflict."""


class ConflictError(WriteError):
    """The write would violate the one-booking-per-tour-and-participant rule."""


class AccessDeniedError(WriteError):
    """The storage access policy rejected the operation."""


@dataclass(frozen=True)
class BookingFilter:
    """
    Row filter. Every field that is set must match; `status_not` excludes
    one status value.
    """

    id: Optional[int] = None
    tour_id: Optional[int] = None
    participant_id: Optional[int] = None
    status: Optional[str] = None
    status_not: Optional[str] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.id, self.tour_id, self.participant_id, self.status, self.status_not)
        )


class BookingStore(ABC):
    """
    Interface for booking storage.

    Implementations:
    - SqlBookingStore: SQLAlchemy, one transaction per operation
    """

    @abstractmethod
    async def insert(
        self,
        tour_id: int,
        participant_id: int,
        status: str,
        payment_status: str,
    ) -> Booking:
        """
        Insert a booking row.

        Raises:
            ConflictError: a row for (tour_id, participant_id) already exists
            WriteError: any other failure
        """

    @abstractmethod
    async def update(self, filters: BookingFilter, patch: Mapping[str, Any]) -> Optional[Booking]:
        """
        Apply `patch` to the single row matching `filters`.

        Returns the updated row, or None when nothing matched.
        """

    @abstractmethod
    async def delete(self, filters: BookingFilter) -> Optional[Booking]:
        """
        Delete the single row matching `filters`.

        Returns the deleted row, or None when nothing matched.

        Raises:
            AccessDeniedError: the access policy does not allow deletes
        """

    @abstractmethod
    async def count(self, filters: BookingFilter) -> int:
        """Count rows matching `filters`. Raises ReadError on failure."""

    @abstractmethod
    async def find_one(self, filters: BookingFilter) -> Optional[Booking]:
        """Return the first row matching `filters`. Raises ReadError on failure."""
