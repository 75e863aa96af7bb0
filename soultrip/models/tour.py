"""
Tour model and its ordered image list.

Key design decisions:
- Capacity is `max_participants`; occupancy is never stored on the tour, it is
  always counted from non-cancelled bookings
- `organizer_name` is copied from the organizer at creation so listings
  need no join
- `country` is stored lowercase so country filters are case-insensitive
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from soultrip.db.base import Base, TimestampMixin


class TourStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class TourDifficulty(str, enum.Enum):
    EASY = "easy"
    MODERATE = "moderate"
    CHALLENGING = "challenging"
    INTENSE = "intense"


class Tour(Base, TimestampMixin):
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organizer_name = Column(String(255), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    itinerary = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    max_participants = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=TourStatus.DRAFT.value)
    country = Column(String(100), nullable=True)
    difficulty = Column(String(20), nullable=True)

    images = relationship(
        "TourImage",
        back_populates="tour",
        order_by="TourImage.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("max_participants >= 1", name="check_tour_max_participants_positive"),
        CheckConstraint("price >= 0", name="check_tour_price_non_negative"),
        CheckConstraint("end_date >= start_date", name="check_tour_dates_ordered"),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="check_tour_status"),
        CheckConstraint(
            "difficulty IS NULL OR difficulty IN ('easy', 'moderate', 'challenging', 'intense')",
            name="check_tour_difficulty",
        ),
        # Listing query: published tours filtered by date range
        Index("ix_tours_status_start_date", "status", "start_date"),
        Index("ix_tours_country", "country"),
    )

    @property
    def is_published(self) -> bool:
        return self.status == TourStatus.PUBLISHED.value

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, title={self.title}, status={self.status}, max={self.max_participants})>"


class TourImage(Base):
    __tablename__ = "tour_images"

    id = Column(Integer, primary_key=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1000), nullable=False)
    alt_text = Column(String(255), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    tour = relationship("Tour", back_populates="images")
