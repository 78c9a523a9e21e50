from __future__ import annotations

from app.domain.entities.booking import BookingStatus

STATUS_COLORS: dict[BookingStatus, str] = {
    BookingStatus.pending: "yellow",
    BookingStatus.approved: "green",
    BookingStatus.declined: "red",
}
DEFAULT_COLOR = "gray"


def status_color(status: BookingStatus) -> str:
    return STATUS_COLORS.get(status, DEFAULT_COLOR)
