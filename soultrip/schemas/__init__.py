from soultrip.schemas.user import (
    UserCreate, UserResponse, UserLogin, ProfileUpdate, PasswordChange, PublicProfile, Token,
)
from soultrip.schemas.tour import (
    TourCreate, TourUpdate, TourResponse, TourSummary, TourListItem, TourListResponse, TourFilters,
)
from soultrip.schemas.booking import (
    BookingResponse, BookingPanelResponse, BookingCancelResponse, ParticipantResponse, TourBookingResponse,
)
from soultrip.schemas.search import SearchInferenceRequest, SearchFilters, SearchInferenceResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "ProfileUpdate", "PasswordChange", "PublicProfile", "Token",
    "TourCreate", "TourUpdate", "TourResponse", "TourSummary", "TourListItem", "TourListResponse",
    "TourFilters",
    "BookingResponse", "BookingPanelResponse", "BookingCancelResponse", "ParticipantResponse",
    "TourBookingResponse",
    "SearchInferenceRequest", "SearchFilters", "SearchInferenceResponse",
]
