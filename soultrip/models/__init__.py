from soultrip.models.user import User, UserRole
from soultrip.models.tour import Tour, TourImage, TourStatus, TourDifficulty
from soultrip.models.booking import Booking, BookingStatus, PaymentStatus

__all__ = [
    "User", "UserRole",
    "Tour", "TourImage", "TourStatus", "TourDifficulty",
    "Booking", "BookingStatus", "PaymentStatus",
]
