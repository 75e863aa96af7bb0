"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .sql_booking_store import SqlBookingStore

__all__ = ['SqlBookingStore']
