from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
from postgrest.exceptions import APIError

from app.application.exceptions import BookingNotFound, InvalidStatusTransition, RepositoryError
from app.application.ports.booking_repository import (
    BookingRepositoryPort,
    ChangeCallback,
    Subscription,
)
from app.domain.entities.booking import Booking, BookingStatus
from app.domain.entities.booking_request import BookingRequest
from app.domain.entities.service_catalog import ServiceOffering, TimeSlot
from app.infrastructure.supabase.client import SupabaseClientProvider
from app.infrastructure.supabase.realtime_feed import RealtimeChangeFeed

BOOKINGS_TABLE = "bookings"
SERVICE_TYPES_TABLE = "service_types"
TIME_SLOTS_TABLE = "time_slots"


class PostgrestBookingRepository(BookingRepositoryPort):
    """Bookings and catalog tables through the Supabase client's PostgREST builder."""

    def __init__(
        self,
        provider: SupabaseClientProvider,
        change_feed: RealtimeChangeFeed | None = None,
    ) -> None:
        self._provider = provider
        self._change_feed = change_feed
        self._logger = logging.getLogger(__name__)

    def use_access_token(self, access_token: str | None) -> None:
        self.access_token = access_token
        if self._change_feed is not None:
            self._change_feed.use_access_token(access_token)

    async def aclose(self) -> None:
        await self._provider.aclose()

    async def create(self, request: BookingRequest) -> str:
        row = {
            "phone_number": request.phone_number,
            "booking_date": request.booking_date.isoformat(),
            "booking_time": request.booking_time,
            "car_vin": request.car_vin,
            "car_plate": request.car_plate,
            "service_type": request.service_type,
            "price": float(request.price),
            "customer_notes": request.customer_notes,
            "status": request.status.value,
        }
        query = (await self._table(BOOKINGS_TABLE)).insert(row)
        rows = await self._execute(query, "insert bookings")
        if not rows or not rows[0].get("id"):
            raise RepositoryError("No booking id returned from store")
        return str(rows[0]["id"])

    async def list_bookings(self) -> list[Booking]:
        query = (await self._table(BOOKINGS_TABLE)).select("*").order("booking_date").order("booking_time")
        rows = await self._execute(query, "list bookings")
        return [_booking_from_row(row) for row in rows]

    async def update_status(self, booking_id: str, status: BookingStatus) -> None:
        # Only pending rows (or rows already at the target) match, so a
        # terminal status can never be overwritten by a racing session.
        query = (
            (await self._table(BOOKINGS_TABLE))
            .update({"status": status.value, "updated_at": _utcnow_iso()})
            .eq("id", booking_id)
            .in_("status", [BookingStatus.pending.value, status.value])
        )
        if await self._execute(query, "update booking status"):
            return

        lookup = (await self._table(BOOKINGS_TABLE)).select("status").eq("id", booking_id).limit(1)
        current = await self._execute(lookup, "read booking status")
        if not current:
            raise BookingNotFound(f"Booking {booking_id} not found")
        raise InvalidStatusTransition(booking_id, current[0].get("status", ""), status.value)

    async def update_notes(self, booking_id: str, admin_notes: str) -> None:
        query = (
            (await self._table(BOOKINGS_TABLE))
            .update({"admin_notes": admin_notes, "updated_at": _utcnow_iso()})
            .eq("id", booking_id)
        )
        if not await self._execute(query, "update booking notes"):
            raise BookingNotFound(f"Booking {booking_id} not found")

    def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        if self._change_feed is None:
            raise RepositoryError("No change feed configured for this repository")
        return self._change_feed.add_listener(callback)

    async def list_service_offerings(self) -> list[ServiceOffering]:
        query = (await self._table(SERVICE_TYPES_TABLE)).select("*").eq("active", True).order("base_price")
        rows = await self._execute(query, "list service types")
        return [
            ServiceOffering(
                id=str(row["id"]),
                name_key=row["name_key"],
                base_price=_decimal(row.get("base_price")),
                duration_minutes=int(row.get("duration_minutes") or 0),
                active=bool(row.get("active", True)),
                created_at=_parse_timestamp(row.get("created_at")),
            )
            for row in rows
        ]

    async def list_time_slots(self) -> list[TimeSlot]:
        query = (await self._table(TIME_SLOTS_TABLE)).select("*").eq("active", True).order("order_index")
        rows = await self._execute(query, "list time slots")
        return [
            TimeSlot(
                id=str(row["id"]),
                time_slot=row["time_slot"],
                order_index=int(row.get("order_index") or 0),
                active=bool(row.get("active", True)),
                created_at=_parse_timestamp(row.get("created_at")),
            )
            for row in rows
        ]

    async def _table(self, name: str) -> Any:
        client = await self._provider.get()
        # Row-level security sees the admin's session when one is set
        client.postgrest.auth(self.access_token or self._provider.api_key)
        return client.table(name)

    async def _execute(self, query: Any, action: str) -> list[dict[str, Any]]:
        try:
            response = await query.execute()
        except APIError as e:
            self._logger.error("Store rejected request", extra={"error": e.message, "reason": action})
            raise RepositoryError(f"{action} failed: {e.message}") from e
        except httpx.HTTPError as e:
            self._logger.error("Store request failed", extra={"error": str(e), "reason": action})
            raise RepositoryError(f"{action} failed: {e}") from e
        return list(response.data or [])


def _booking_from_row(row: dict[str, Any]) -> Booking:
    return Booking(
        id=str(row["id"]),
        phone_number=row.get("phone_number") or "",
        booking_date=date.fromisoformat(row["booking_date"]),
        booking_time=row.get("booking_time") or "",
        car_plate=row.get("car_plate") or "",
        service_type=row.get("service_type") or "",
        price=_decimal(row.get("price")),
        status=BookingStatus(row.get("status") or BookingStatus.pending.value),
        car_vin=row.get("car_vin"),
        customer_notes=row.get("customer_notes"),
        admin_notes=row.get("admin_notes"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
