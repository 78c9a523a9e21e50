from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date

from app.application.presenters.status_colors import status_color
from app.application.view_models.booking_view_model import BookingViewModel
from app.domain.entities.booking import Booking, StatusFilter

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class CalendarEntry:
    id: str
    booking_time: str
    car_plate: str
    status: str
    status_color: str


@dataclass(frozen=True)
class CalendarDay:
    day: int
    iso_date: str
    is_today: bool
    entries: list[CalendarEntry] = field(default_factory=list)


@dataclass(frozen=True)
class CalendarMonth:
    year: int
    month: int
    title: str
    weekday_labels: tuple[str, ...]
    leading_blanks: int
    days: list[CalendarDay]

    def day(self, number: int) -> CalendarDay:
        return self.days[number - 1]


def leading_blanks(year: int, month: int) -> int:
    """Sunday-first weekday index of the 1st of the month."""
    # date.weekday() is Monday=0
    return (date(year, month, 1).weekday() + 1) % 7


def group_by_date(bookings: list[Booking]) -> dict[str, list[Booking]]:
    grouped: dict[str, list[Booking]] = {}
    for booking in bookings:
        grouped.setdefault(booking.booking_date.isoformat(), []).append(booking)
    return grouped


class BookingCalendarPresenter:
    """Month grid over the view model's filtered bookings. Navigation never refetches."""

    def __init__(
        self,
        view_model: BookingViewModel,
        today: date,
        status_filter: StatusFilter | None = None,
    ) -> None:
        self._view_model = view_model
        self._status_filter = status_filter
        self._today = today
        self._year = self._today.year
        self._month = self._today.month

    @property
    def displayed_month(self) -> tuple[int, int]:
        return self._year, self._month

    def show_month(self, year: int, month: int) -> None:
        if not 1 <= month <= 12:
            raise ValueError(f"month must be 1..12, got {month}")
        self._year, self._month = year, month

    def previous_month(self) -> None:
        if self._month == 1:
            self.show_month(self._year - 1, 12)
        else:
            self.show_month(self._year, self._month - 1)

    def next_month(self) -> None:
        if self._month == 12:
            self.show_month(self._year + 1, 1)
        else:
            self.show_month(self._year, self._month + 1)

    def bookings_by_date(self) -> dict[str, list[Booking]]:
        if self._status_filter is None:
            return group_by_date(self._view_model.filtered_bookings)
        return group_by_date(self._view_model.select(self._status_filter))

    def month_grid(self) -> CalendarMonth:
        grouped = self.bookings_by_date()
        days_in_month = calendar.monthrange(self._year, self._month)[1]
        days: list[CalendarDay] = []
        for number in range(1, days_in_month + 1):
            current = date(self._year, self._month, number)
            iso = current.isoformat()
            days.append(
                CalendarDay(
                    day=number,
                    iso_date=iso,
                    is_today=current == self._today,
                    entries=[
                        CalendarEntry(
                            id=b.id,
                            booking_time=b.booking_time,
                            car_plate=b.car_plate,
                            status=b.status.value,
                            status_color=status_color(b.status),
                        )
                        for b in grouped.get(iso, [])
                    ],
                )
            )
        return CalendarMonth(
            year=self._year,
            month=self._month,
            title=f"{calendar.month_name[self._month]} {self._year}",
            weekday_labels=WEEKDAY_LABELS,
            leading_blanks=leading_blanks(self._year, self._month),
            days=days,
        )
