from __future__ import annotations

import logging
from decimal import Decimal

from app.application.ports.booking_repository import BookingRepositoryPort
from app.domain.entities.service_catalog import ServiceOffering, TimeSlot


class CatalogCache:
    """
    Read-through cache of the two reference lists used by the booking form.

    Lists are fetched on first use and kept for the lifetime of the cache.
    A failed fetch degrades to an empty list and is retried on the next call.
    """

    def __init__(self, repository: BookingRepositoryPort) -> None:
        self._repository = repository
        self._services: list[ServiceOffering] | None = None
        self._time_slots: list[TimeSlot] | None = None
        self._logger = logging.getLogger(__name__)

    async def services(self) -> list[ServiceOffering]:
        if self._services is None:
            try:
                loaded = await self._repository.list_service_offerings()
            except Exception as e:
                self._logger.warning("Service catalog load failed", extra={"error": str(e)})
                return []
            self._services = sorted(
                (s for s in loaded if s.active),
                key=lambda s: s.base_price,
            )
            self._logger.info("Service catalog loaded", extra={"count": len(self._services)})
        return list(self._services)

    async def time_slots(self) -> list[TimeSlot]:
        if self._time_slots is None:
            try:
                loaded = await self._repository.list_time_slots()
            except Exception as e:
                self._logger.warning("Time slot load failed", extra={"error": str(e)})
                return []
            self._time_slots = sorted(
                (t for t in loaded if t.active),
                key=lambda t: t.order_index,
            )
            self._logger.info("Time slots loaded", extra={"count": len(self._time_slots)})
        return list(self._time_slots)

    async def price_for(self, name_key: str) -> Decimal:
        for service in await self.services():
            if service.name_key == name_key:
                return service.base_price
        return Decimal("0")
