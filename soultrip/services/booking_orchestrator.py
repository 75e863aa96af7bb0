"""
Booking panel orchestration.

Sequences the capacity reader, the existence resolver and the booking
protocols for one viewer and one tour, and keeps a small panel state
(`current_bookings`, `my_booking_id`) up to date.

The state only changes through `apply_booking_outcome` and
`apply_cancellation_outcome`. A successful action adjusts the counter
optimistically instead of re-reading it; the next `load` reconciles it with
the rows actually stored. Failed actions never touch the counters.
"""

import enum
from dataclasses import dataclass, replace
from typing import Optional, Union

from soultrip.core.metrics import (
    booking_latency,
    record_booking_outcome,
    record_booking_refusal,
    record_cancellation_outcome,
)
from soultrip.models.tour import Tour
from soultrip.models.user import UserRole
from soultrip.services.booking_service import (
    BookingOutcome,
    BookingOutcomeKind,
    CancellationOutcome,
    cancel_booking,
    create_or_reactivate_booking,
    find_active_booking_id,
)
from soultrip.services.capacity_service import is_sold_out, read_capacity
from soultrip.services.interfaces.booking_store import BookingStore

MSG_CREATED = "Booking created! We will contact you with next steps."
MSG_REACTIVATED = "Booking re-activated!"
MSG_CREATE_FAILED = "Failed to create booking. Please try again."
MSG_CANCELLED = "Your booking has been cancelled."
MSG_CANCEL_FAILED = "Failed to cancel booking. Please try again."
MSG_NOTHING_TO_CANCEL = "You have no active booking for this tour"


@dataclass(frozen=True)
class Viewer:
    """The authenticated user acting on the panel."""

    user_id: int
    role: str

    @property
    def is_participant(self) -> bool:
        return self.role == UserRole.PARTICIPANT.value


class Eligibility(str, enum.Enum):
    SIGN_IN_REQUIRED = "sign_in_required"
    WRONG_ROLE = "wrong_role"
    UNAVAILABLE = "unavailable"
    ALREADY_BOOKED = "already_booked"
    SOLD_OUT = "sold_out"
    BOOKABLE = "bookable"


REFUSAL_MESSAGES = {
    Eligibility.SIGN_IN_REQUIRED: "Please sign in to book this tour",
    Eligibility.WRONG_ROLE: "Only participants can book tours",
    Eligibility.UNAVAILABLE: "This tour is not available",
    Eligibility.ALREADY_BOOKED: "You have already booked this tour",
    Eligibility.SOLD_OUT: "This tour is sold out",
}


@dataclass(frozen=True)
class BookingPanelState:
    tour_id: int
    max_participants: int
    current_bookings: int
    my_booking_id: Optional[int] = None
    message: Optional[str] = None

    @property
    def is_sold_out(self) -> bool:
        return is_sold_out(self.current_bookings, self.max_participants)


@dataclass(frozen=True)
class BookingActionResult:
    state: BookingPanelState
    eligibility: Eligibility
    # None when the action was refused before reaching storage
    outcome: Optional[Union[BookingOutcome, CancellationOutcome]] = None


def apply_booking_outcome(state: BookingPanelState, outcome: BookingOutcome) -> BookingPanelState:
    if outcome.kind is BookingOutcomeKind.ERROR:
        return replace(state, message=MSG_CREATE_FAILED)

    message = MSG_CREATED if outcome.kind is BookingOutcomeKind.CREATED else MSG_REACTIVATED
    return replace(
        state,
        current_bookings=state.current_bookings + 1,
        my_booking_id=outcome.booking_id,
        message=message,
    )


def apply_cancellation_outcome(
    state: BookingPanelState, outcome: CancellationOutcome
) -> BookingPanelState:
    if not outcome.succeeded:
        return replace(state, message=MSG_CANCEL_FAILED)

    return replace(
        state,
        current_bookings=max(0, state.current_bookings - 1),
        my_booking_id=None,
        message=MSG_CANCELLED,
    )


def resolve_eligibility(
    viewer: Optional[Viewer], tour: Tour, state: BookingPanelState
) -> Eligibility:
    if viewer is None:
        return Eligibility.SIGN_IN_REQUIRED
    if not viewer.is_participant:
        return Eligibility.WRONG_ROLE
    if not tour.is_published:
        return Eligibility.UNAVAILABLE
    if state.my_booking_id is not None:
        return Eligibility.ALREADY_BOOKED
    if state.is_sold_out:
        return Eligibility.SOLD_OUT
    return Eligibility.BOOKABLE


class BookingOrchestrator:
    """
    Drives the booking panel for a tour page.

    Capacity is checked before booking but not fenced: two participants
    racing for the last place can both pass the check. The unique constraint
    only prevents duplicate rows per participant.
    """

    def __init__(self, store: BookingStore):
        self.store = store

    async def load(self, tour: Tour, viewer: Optional[Viewer]) -> BookingPanelState:
        capacity = await read_capacity(self.store, tour)
        my_booking_id = await find_active_booking_id(
            self.store, tour.id, viewer.user_id if viewer else None
        )
        return BookingPanelState(
            tour_id=tour.id,
            max_participants=capacity.maximum,
            current_bookings=capacity.current,
            my_booking_id=my_booking_id,
        )

    async def book(
        self, state: BookingPanelState, tour: Tour, viewer: Optional[Viewer]
    ) -> BookingActionResult:
        eligibility = resolve_eligibility(viewer, tour, state)
        if eligibility is not Eligibility.BOOKABLE:
            record_booking_refusal(eligibility.value)
            return BookingActionResult(
                state=replace(state, message=REFUSAL_MESSAGES[eligibility]),
                eligibility=eligibility,
            )

        with booking_latency.labels(operation="book").time():
            outcome = await create_or_reactivate_booking(self.store, tour.id, viewer.user_id)
        record_booking_outcome(outcome.kind.value)

        new_state = apply_booking_outcome(state, outcome)
        return BookingActionResult(
            state=new_state,
            eligibility=resolve_eligibility(viewer, tour, new_state),
            outcome=outcome,
        )

    async def cancel(
        self, state: BookingPanelState, tour: Tour, viewer: Optional[Viewer]
    ) -> BookingActionResult:
        if viewer is None:
            return BookingActionResult(
                state=replace(state, message=REFUSAL_MESSAGES[Eligibility.SIGN_IN_REQUIRED]),
                eligibility=Eligibility.SIGN_IN_REQUIRED,
            )
        if state.my_booking_id is None:
            return BookingActionResult(
                state=replace(state, message=MSG_NOTHING_TO_CANCEL),
                eligibility=resolve_eligibility(viewer, tour, state),
            )

        with booking_latency.labels(operation="cancel").time():
            outcome = await cancel_booking(self.store, state.my_booking_id, viewer.user_id)
        record_cancellation_outcome(outcome.kind.value)

        new_state = apply_cancellation_outcome(state, outcome)
        return BookingActionResult(
            state=new_state,
            eligibility=resolve_eligibility(viewer, tour, new_state),
            outcome=outcome,
        )

    async def cancel_by_id(self, booking_id: int, viewer: Viewer) -> CancellationOutcome:
        """Cancel from the bookings list, where no panel state exists."""
        with booking_latency.labels(operation="cancel").time():
            outcome = await cancel_booking(self.store, booking_id, viewer.user_id)
        record_cancellation_outcome(outcome.kind.value)
        return outcome
