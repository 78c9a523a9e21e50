from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from app.application.presenters.status_colors import status_color
from app.application.view_models.booking_view_model import BookingViewModel
from app.domain.entities.booking import Booking, StatusFilter


@dataclass(frozen=True)
class BookingRow:
    id: str
    status: str
    status_color: str
    phone_number: str
    booking_date: date
    booking_time: str
    car_plate: str
    car_vin: str | None
    service_type: str
    price: Decimal
    customer_notes: str | None
    admin_notes: str | None
    created_at: datetime | None
    can_moderate: bool
    is_editing_notes: bool


class BookingListPresenter:
    """
    List projection of the view model's filtered bookings.

    Holds the only client-local state of the list: which booking's admin
    notes are being edited and the unsaved text. Nothing is persisted until
    `save_notes()`.
    """

    def __init__(self, view_model: BookingViewModel, status_filter: StatusFilter | None = None) -> None:
        self._view_model = view_model
        self._status_filter = status_filter
        self._editing_id: str | None = None
        self._notes_draft = ""

    @property
    def editing_id(self) -> str | None:
        return self._editing_id

    @property
    def notes_draft(self) -> str:
        return self._notes_draft

    def rows(self) -> list[BookingRow]:
        if self._status_filter is None:
            bookings = self._view_model.filtered_bookings
        else:
            bookings = self._view_model.select(self._status_filter)
        return [self._to_row(b) for b in bookings]

    def begin_edit(self, booking_id: str) -> None:
        booking = self._view_model.get(booking_id)
        if booking is None:
            raise KeyError(booking_id)
        # Starting a new edit drops any unsaved text of the previous one
        self._editing_id = booking_id
        self._notes_draft = booking.admin_notes or ""

    def update_draft(self, text: str) -> None:
        if self._editing_id is None:
            raise RuntimeError("No booking notes are being edited")
        self._notes_draft = text

    def cancel_edit(self) -> None:
        self._editing_id = None
        self._notes_draft = ""

    async def save_notes(self) -> None:
        if self._editing_id is None:
            raise RuntimeError("No booking notes are being edited")
        booking_id, notes = self._editing_id, self._notes_draft
        await self._view_model.set_admin_notes(booking_id, notes)
        self.cancel_edit()

    def _to_row(self, booking: Booking) -> BookingRow:
        return BookingRow(
            id=booking.id,
            status=booking.status.value,
            status_color=status_color(booking.status),
            phone_number=booking.phone_number,
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            car_plate=booking.car_plate,
            car_vin=booking.car_vin,
            service_type=booking.service_type,
            price=booking.price,
            customer_notes=booking.customer_notes,
            admin_notes=booking.admin_notes,
            created_at=booking.created_at,
            can_moderate=booking.is_pending,
            is_editing_notes=booking.id == self._editing_id,
        )
