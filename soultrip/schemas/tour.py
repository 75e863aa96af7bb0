"""
Pydantic schemas for tour-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from soultrip.models.tour import TourDifficulty, TourStatus

# (column, ascending) per sort key
SORT_OPTIONS = {
    "newest": ("created_at", False),
    "price_asc": ("price", True),
    "price_desc": ("price", False),
    "country_asc": ("country", True),
    "country_desc": ("country", False),
    "start_date_asc": ("start_date", True),
    "start_date_desc": ("start_date", False),
}

SortKey = Literal[
    "newest",
    "price_asc",
    "price_desc",
    "country_asc",
    "country_desc",
    "start_date_asc",
    "start_date_desc",
]

DEFAULT_SORT = "newest"
DEFAULT_PAGE_SIZE = 9


class TourImageIn(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=1000)
    alt_text: Optional[str] = Field(None, max_length=255)


class TourImageResponse(BaseModel):
    image_url: str
    alt_text: Optional[str]
    position: int

    model_config = {"from_attributes": True}


def _normalize_country(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


class TourCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    itinerary: Optional[str] = Field(None, max_length=20000)
    start_date: date
    end_date: date
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    max_participants: int = Field(..., ge=1, le=10000)
    status: TourStatus = TourStatus.DRAFT
    country: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[TourDifficulty] = None
    images: list[TourImageIn] = Field(default_factory=list, max_length=20)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("country")
    @classmethod
    def lower_country(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_country(v)

    @model_validator(mode="after")
    def check_dates(self) -> "TourCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TourUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    itinerary: Optional[str] = Field(None, max_length=20000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    max_participants: Optional[int] = Field(None, ge=1, le=10000)
    status: Optional[TourStatus] = None
    country: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[TourDifficulty] = None
    images: Optional[list[TourImageIn]] = Field(None, max_length=20)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @field_validator("country")
    @classmethod
    def lower_country(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_country(v)


class TourSummary(BaseModel):
    id: int
    organizer_id: int
    organizer_name: Optional[str]
    title: str
    start_date: date
    end_date: date
    price: Decimal
    currency: str
    status: str
    country: Optional[str]
    difficulty: Optional[str]
    images: list[TourImageResponse] = []

    model_config = {"from_attributes": True}


class TourResponse(TourSummary):
    description: Optional[str]
    itinerary: Optional[str]
    max_participants: int
    created_at: datetime
    updated_at: datetime


class TourListItem(TourSummary):
    """A listing card. Availability is counted from booking rows at read time."""

    max_participants: int
    current_bookings: int = 0
    is_sold_out: bool = False


class TourListResponse(BaseModel):
    tours: list[TourListItem]
    total: int
    page: int
    page_size: int
    cached: bool = False


class TourFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    countries: list[str] = Field(default_factory=list)
    difficulty: Optional[TourDifficulty] = None
    sort: SortKey = DEFAULT_SORT

    @field_validator("countries")
    @classmethod
    def lower_countries(cls, v: list[str]) -> list[str]:
        return [c for c in (_normalize_country(c) for c in v) if c]
