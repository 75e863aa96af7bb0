"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class BookingTourSummary(BaseModel):
    id: int
    title: str
    start_date: date
    end_date: date

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    tour_id: int
    participant_id: int
    status: str
    payment_status: str
    created_at: datetime
    tour: Optional[BookingTourSummary] = None

    model_config = {"from_attributes": True}


class BookingPanelResponse(BaseModel):
    """Booking controls for a tour page, from the viewer's point of view."""

    tour_id: int
    max_participants: int
    current_bookings: int
    is_sold_out: bool
    my_booking_id: Optional[int]
    eligibility: str
    message: Optional[str] = None
    # created | reactivated | deleted | soft_cancelled, set after an action
    outcome: Optional[str] = None


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    outcome: str


class ParticipantResponse(BaseModel):
    id: int
    full_name: str
    avatar_url: Optional[str]

    model_config = {"from_attributes": True}


class BookingParticipant(BaseModel):
    id: int
    full_name: str

    model_config = {"from_attributes": True}


class TourBookingResponse(BaseModel):
    """One row of the organizer's bookings table for a tour."""

    id: int
    status: str
    payment_status: str
    created_at: datetime
    participant: BookingParticipant

    model_config = {"from_attributes": True}
