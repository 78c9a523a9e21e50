from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from app.domain.entities.booking import Booking, BookingStatus
from app.domain.entities.booking_request import BookingRequest
from app.domain.entities.service_catalog import ServiceOffering, TimeSlot

ChangeCallback = Callable[[], None]


class Subscription(ABC):
    @abstractmethod
    def unsubscribe(self) -> None:
        """Release the registration. Calling it twice is a no-op."""
        raise NotImplementedError


class BookingRepositoryPort(ABC):
    access_token: str | None = None

    def use_access_token(self, access_token: str | None) -> None:
        """Run later calls as the signed-in user holding this token. None reverts to the public key."""
        self.access_token = access_token

    async def aclose(self) -> None:
        return None

    @abstractmethod
    async def create(self, request: BookingRequest) -> str:
        """Insert a new booking. Returns the store-assigned id."""
        raise NotImplementedError

    @abstractmethod
    async def list_bookings(self) -> list[Booking]:
        """Full snapshot ordered by booking_date asc, booking_time asc."""
        raise NotImplementedError

    @abstractmethod
    async def update_status(self, booking_id: str, status: BookingStatus) -> None:
        """
        Set status and refresh updated_at.
        Idempotent for the same status; raises InvalidStatusTransition when the
        stored status is terminal and differs from the target.
        """
        raise NotImplementedError

    @abstractmethod
    async def update_notes(self, booking_id: str, admin_notes: str) -> None:
        """Set admin notes and refresh updated_at."""
        raise NotImplementedError

    @abstractmethod
    def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        """
        Register a callback fired on any insert/update/delete of bookings.
        The callback carries no delta; it is a signal to re-list.
        """
        raise NotImplementedError

    @abstractmethod
    async def list_service_offerings(self) -> list[ServiceOffering]:
        """Active offerings ordered by base_price asc."""
        raise NotImplementedError

    @abstractmethod
    async def list_time_slots(self) -> list[TimeSlot]:
        """Active time slots ordered by order_index asc."""
        raise NotImplementedError
