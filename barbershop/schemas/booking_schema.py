"""Booking, booking-service link and availability block data models."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that occupy the chair and therefore block slots.
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class BookingRecord(BaseModel):
    """A persisted booking as stored in the ``bookings`` table."""
    id: Optional[str] = None
    user_name: str = ""
    user_phone: str = ""
    user_email: str = ""
    booking_date: date
    booking_time: str
    end_at_time: Optional[str] = None
    total_duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingServiceLink(BaseModel):
    """Join row linking a booking to one of its services."""
    booking_id: str
    service_id: str


class AvailabilityBlock(BaseModel):
    """An externally managed interval during which the chair is unavailable."""
    id: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    is_booked: bool = True
    staff_id: Optional[str] = None
