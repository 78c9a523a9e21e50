from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class ServiceOffering:
    id: str
    name_key: str  # translation key, also the value stored on bookings
    base_price: Decimal
    duration_minutes: int
    active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class TimeSlot:
    id: str
    time_slot: str  # display value, e.g. "09:00"
    order_index: int
    active: bool = True
    created_at: datetime | None = None
