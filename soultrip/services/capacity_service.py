"""
Tour capacity: how many places on a tour are taken.

The count is always derived from booking rows (non-cancelled only). A failed
read raises ReadError; callers must treat the capacity as unknown rather
than assume the tour has room.
"""

from dataclasses import dataclass

from soultrip.models.booking import BookingStatus
from soultrip.models.tour import Tour
from soultrip.services.interfaces.booking_store import BookingFilter, BookingStore


@dataclass(frozen=True)
class TourCapacity:
    current: int
    maximum: int

    @property
    def is_sold_out(self) -> bool:
        return is_sold_out(self.current, self.maximum)

    @property
    def remaining(self) -> int:
        return max(0, self.maximum - self.current)


def is_sold_out(current_bookings: int, max_participants: int) -> bool:
    return current_bookings >= max_participants


async def count_active_bookings(store: BookingStore, tour_id: int) -> int:
    """Non-cancelled bookings for the tour. Unknown tours count as zero."""
    return await store.count(
        BookingFilter(tour_id=tour_id, status_not=BookingStatus.CANCELLED.value)
    )


async def read_capacity(store: BookingStore, tour: Tour) -> TourCapacity:
    current = await count_active_bookings(store, tour.id)
    return TourCapacity(current=current, maximum=tour.max_participants)
