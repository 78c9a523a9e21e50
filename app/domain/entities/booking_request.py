from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from app.domain.entities.booking import BookingStatus


@dataclass(frozen=True)
class BookingDraft:
    # Raw form input, nothing normalized yet
    phone_number: str = ""
    booking_date: str = ""
    booking_time: str = ""
    car_vin: str = ""
    car_plate: str = ""
    service_type: str = ""
    customer_notes: str = ""


@dataclass(frozen=True)
class BookingRequest:
    phone_number: str
    booking_date: date
    booking_time: str
    car_plate: str
    service_type: str
    price: Decimal
    car_vin: str | None = None
    customer_notes: str | None = None
    status: BookingStatus = BookingStatus.pending


@dataclass(frozen=True)
class BookingResolution:
    request: BookingRequest | None
    price: Decimal
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.request is not None and not self.errors
