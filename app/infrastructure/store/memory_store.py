from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

from app.application.exceptions import BookingNotFound, InvalidStatusTransition
from app.application.ports.booking_repository import (
    BookingRepositoryPort,
    ChangeCallback,
    Subscription,
)
from app.domain.entities.booking import Booking, BookingStatus, can_transition
from app.domain.entities.booking_request import BookingRequest
from app.domain.entities.service_catalog import ServiceOffering, TimeSlot


class _MemorySubscription(Subscription):
    def __init__(self, store: MemoryBookingRepository, callback: ChangeCallback) -> None:
        self._store = store
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._drop_subscriber(self._callback)


class MemoryBookingRepository(BookingRepositoryPort):
    """In-process stand-in for the hosted store. Fires change signals after every write."""

    def __init__(
        self,
        services: list[ServiceOffering] | None = None,
        time_slots: list[TimeSlot] | None = None,
    ) -> None:
        self._bookings: dict[str, Booking] = {}
        self._services: dict[str, ServiceOffering] = {s.id: s for s in services or []}
        self._time_slots: dict[str, TimeSlot] = {t.id: t for t in time_slots or []}
        self._subscribers: list[ChangeCallback] = []
        self._logger = logging.getLogger(__name__)

    async def create(self, request: BookingRequest) -> str:
        now = _utcnow()
        booking_id = str(uuid.uuid4())
        self._bookings[booking_id] = Booking(
            id=booking_id,
            phone_number=request.phone_number,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            car_plate=request.car_plate,
            service_type=request.service_type,
            price=request.price,
            status=BookingStatus.pending,
            car_vin=request.car_vin,
            customer_notes=request.customer_notes,
            created_at=now,
            updated_at=now,
        )
        self._notify()
        return booking_id

    async def list_bookings(self) -> list[Booking]:
        return sorted(self._bookings.values(), key=lambda b: (b.booking_date, b.booking_time))

    async def update_status(self, booking_id: str, status: BookingStatus) -> None:
        booking = self._get(booking_id)
        if not can_transition(booking.status, status):
            raise InvalidStatusTransition(booking_id, booking.status.value, status.value)
        self._bookings[booking_id] = replace(booking, status=status, updated_at=_utcnow())
        self._notify()

    async def update_notes(self, booking_id: str, admin_notes: str) -> None:
        booking = self._get(booking_id)
        self._bookings[booking_id] = replace(booking, admin_notes=admin_notes, updated_at=_utcnow())
        self._notify()

    def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        self._subscribers.append(callback)
        return _MemorySubscription(self, callback)

    async def list_service_offerings(self) -> list[ServiceOffering]:
        active = [s for s in self._services.values() if s.active]
        return sorted(active, key=lambda s: s.base_price)

    async def list_time_slots(self) -> list[TimeSlot]:
        active = [t for t in self._time_slots.values() if t.active]
        return sorted(active, key=lambda t: t.order_index)

    def add_service_offering(self, offering: ServiceOffering) -> None:
        self._services[offering.id] = offering

    def add_time_slot(self, slot: TimeSlot) -> None:
        self._time_slots[slot.id] = slot

    def set_base_price(self, name_key: str, base_price: Decimal) -> None:
        """Catalog edit. Existing bookings keep the price they were created with."""
        for service_id, service in list(self._services.items()):
            if service.name_key == name_key:
                self._services[service_id] = replace(service, base_price=base_price)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _get(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    def _drop_subscriber(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception as e:
                self._logger.error("Change subscriber failed", extra={"error": str(e)})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
