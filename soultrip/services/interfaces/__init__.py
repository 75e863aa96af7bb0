"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .booking_store import (
    AccessDeniedError,
    BookingFilter,
    BookingStore,
    ConflictError,
    ReadError,
    StoreError,
    WriteError,
)

__all__ = [
    'AccessDeniedError', 'BookingFilter', 'BookingStore', 'ConflictError',
    'ReadError', 'StoreError', 'WriteError',
]
