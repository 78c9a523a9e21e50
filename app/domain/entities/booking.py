from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class BookingStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


class StatusFilter(str, Enum):
    all = "all"
    pending = "pending"
    approved = "approved"
    declined = "declined"


BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.pending: {BookingStatus.approved, BookingStatus.declined},
    BookingStatus.approved: set(),
    BookingStatus.declined: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Re-applying the current status counts as allowed (idempotent update)."""
    if current == target:
        return True
    return target in BOOKING_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class Booking:
    id: str
    phone_number: str
    booking_date: date
    booking_time: str
    car_plate: str
    service_type: str
    price: Decimal
    status: BookingStatus = BookingStatus.pending
    car_vin: str | None = None
    customer_notes: str | None = None
    admin_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.pending


@dataclass(frozen=True)
class BookingStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    declined: int = 0

    @classmethod
    def from_bookings(cls, bookings: list[Booking]) -> BookingStats:
        return cls(
            total=len(bookings),
            pending=sum(1 for b in bookings if b.status == BookingStatus.pending),
            approved=sum(1 for b in bookings if b.status == BookingStatus.approved),
            declined=sum(1 for b in bookings if b.status == BookingStatus.declined),
        )
