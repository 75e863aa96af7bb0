"""
Booking model representing a participant's place on a tour.

Key design decisions:
- Unique constraint on (tour_id, participant_id) covers cancelled rows too,
  so re-booking after a soft cancel reuses the existing row instead of
  inserting a second one
- Status allows soft cancellation when the storage policy forbids deletes
- No seat counter lives on the tour; capacity is counted from this table
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship

from soultrip.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)

    tour = relationship("Tour", lazy="raise")
    participant = relationship("User", lazy="raise")

    __table_args__ = (
        UniqueConstraint("tour_id", "participant_id", name="uq_tour_participant_booking"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'partial', 'paid')", name="check_booking_payment_status"
        ),
        # Capacity count: WHERE tour_id = ? AND status != 'cancelled'
        Index("ix_bookings_tour_status", "tour_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, tour={self.tour_id}, participant={self.participant_id}, "
            f"status={self.status})>"
        )
