from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

from app.domain.entities.booking_request import BookingDraft, BookingRequest, BookingResolution
from app.domain.entities.service_catalog import ServiceOffering

PHONE_PATTERN = re.compile(r"^[\d\s+()-]+$")
VIN_MAX_LENGTH = 17

# Error codes map onto translation keys on the client side
ERROR_REQUIRED = "required"
ERROR_INVALID_PHONE = "invalid_phone"
ERROR_SELECT_DATE = "select_date"
ERROR_INVALID_DATE = "invalid_date"
ERROR_DATE_IN_PAST = "date_in_past"
ERROR_SELECT_TIME = "select_time"
ERROR_UNKNOWN_SERVICE = "unknown_service"


def find_offering(services: list[ServiceOffering], name_key: str) -> ServiceOffering | None:
    for service in services:
        if service.active and service.name_key == name_key:
            return service
    return None


def normalize_vin(raw: str | None) -> str | None:
    vin = (raw or "").strip().upper()[:VIN_MAX_LENGTH]
    return vin or None


def _parse_date(raw: str) -> date | None:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def resolve_booking(
    draft: BookingDraft,
    services: list[ServiceOffering],
    today: date | None = None,
) -> BookingResolution:
    """
    Validate and price a booking draft against the current catalog.

    Every field is checked independently so the caller gets the full error
    set in one pass. The time value is only required to be non-empty; it is
    not re-checked against the active slot list.
    """
    errors: dict[str, str] = {}

    phone = draft.phone_number.strip()
    if not phone:
        errors["phone_number"] = ERROR_REQUIRED
    elif not PHONE_PATTERN.match(phone):
        errors["phone_number"] = ERROR_INVALID_PHONE

    booking_date: date | None = None
    raw_date = draft.booking_date.strip()
    if not raw_date:
        errors["booking_date"] = ERROR_SELECT_DATE
    else:
        booking_date = _parse_date(raw_date)
        if booking_date is None:
            errors["booking_date"] = ERROR_INVALID_DATE
        elif today is not None and booking_date < today:
            errors["booking_date"] = ERROR_DATE_IN_PAST

    booking_time = draft.booking_time.strip()
    if not booking_time:
        errors["booking_time"] = ERROR_SELECT_TIME

    plate = draft.car_plate.strip().upper()
    if not plate:
        errors["car_plate"] = ERROR_REQUIRED

    service_key = draft.service_type.strip()
    offering = find_offering(services, service_key) if service_key else None
    if not service_key:
        errors["service_type"] = ERROR_REQUIRED
    elif offering is None:
        errors["service_type"] = ERROR_UNKNOWN_SERVICE

    price = offering.base_price if offering else Decimal("0")

    if errors or booking_date is None:
        return BookingResolution(request=None, price=price, errors=errors)

    request = BookingRequest(
        phone_number=phone,
        booking_date=booking_date,
        booking_time=booking_time,
        car_plate=plate,
        service_type=service_key,
        price=price,
        car_vin=normalize_vin(draft.car_vin),
        customer_notes=draft.customer_notes.strip() or None,
    )
    return BookingResolution(request=request, price=price, errors={})
