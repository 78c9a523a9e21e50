from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.application.exceptions import BookingSubmissionError, BookingValidationError
from app.application.ports.booking_repository import BookingRepositoryPort
from app.application.use_cases.catalog_cache import CatalogCache
from app.application.use_cases.resolve_booking import resolve_booking
from app.domain.entities.booking_request import BookingDraft


@dataclass(frozen=True)
class SubmitBookingResult:
    booking_id: str
    price: Decimal


class SubmitBookingUseCase:
    def __init__(self, repository: BookingRepositoryPort, catalog: CatalogCache) -> None:
        self._repository = repository
        self._catalog = catalog
        self._logger = logging.getLogger(__name__)

    async def execute(self, draft: BookingDraft, today: date | None = None) -> SubmitBookingResult:
        """
        Validate, price and store a public booking request.

        Raises BookingValidationError with the field errors, or
        BookingSubmissionError (generic message) if the store rejects it.
        """
        services = await self._catalog.services()
        resolution = resolve_booking(draft, services, today=today)
        if not resolution.is_valid or resolution.request is None:
            self._logger.info("Booking draft rejected", extra={"reason": ",".join(sorted(resolution.errors))})
            raise BookingValidationError(resolution.errors)

        try:
            booking_id = await self._repository.create(resolution.request)
        except Exception as e:
            self._logger.exception("Booking create failed", extra={"error": str(e)})
            raise BookingSubmissionError() from e

        self._logger.info(
            "Booking created",
            extra={"booking_id": booking_id, "service": resolution.request.service_type},
        )
        return SubmitBookingResult(booking_id=booking_id, price=resolution.price)
