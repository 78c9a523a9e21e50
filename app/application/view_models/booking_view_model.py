from __future__ import annotations

import asyncio
import logging

from app.application.exceptions import (
    BookingNotFound,
    BookingSubmissionError,
    InvalidStatusTransition,
)
from app.application.ports.booking_repository import BookingRepositoryPort, Subscription
from app.domain.entities.booking import (
    Booking,
    BookingStats,
    BookingStatus,
    StatusFilter,
    can_transition,
)


class BookingViewModel:
    """
    Local, server-confirmed view of every booking for one admin session.

    The snapshot is only ever replaced wholesale by a fresh `list_bookings()`
    result. Change-feed callbacks never touch the snapshot; they put a signal
    on a queue that a single worker task drains, so reconciliation always runs
    on the event loop that owns this object.

    Overlapping reloads are ordered by a request counter: a response is only
    applied if it belongs to a newer request than the one already applied.
    """

    def __init__(
        self,
        repository: BookingRepositoryPort,
        status_filter: StatusFilter = StatusFilter.all,
    ) -> None:
        self._repository = repository
        self._snapshot: tuple[Booking, ...] = ()
        self._status_filter = status_filter
        self._loading = True
        self._in_flight = 0
        self._request_seq = 0
        self._applied_seq = 0
        self._version = 0
        self._signals: asyncio.Queue[None] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def bookings(self) -> list[Booking]:
        return list(self._snapshot)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def version(self) -> int:
        return self._version

    @property
    def status_filter(self) -> StatusFilter:
        return self._status_filter

    @property
    def filtered_bookings(self) -> list[Booking]:
        return self.select(self._status_filter)

    @property
    def stats(self) -> BookingStats:
        return BookingStats.from_bookings(list(self._snapshot))

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def select(self, status_filter: StatusFilter | str) -> list[Booking]:
        """Snapshot subset for a filter, without touching the held filter."""
        status_filter = StatusFilter(status_filter)
        if status_filter == StatusFilter.all:
            return list(self._snapshot)
        target = BookingStatus(status_filter.value)
        return [b for b in self._snapshot if b.status == target]

    def get(self, booking_id: str) -> Booking | None:
        for booking in self._snapshot:
            if booking.id == booking_id:
                return booking
        return None

    def set_status_filter(self, status_filter: StatusFilter | str) -> None:
        self._status_filter = StatusFilter(status_filter)

    async def start(self) -> None:
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._signals = asyncio.Queue()
        self._subscription = self._repository.subscribe_to_changes(self._on_change)
        self._worker = asyncio.create_task(self._drain_signals())
        await self.reconcile()

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._signals = None

    async def __aenter__(self) -> BookingViewModel:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def reconcile(self) -> bool:
        """Replace the snapshot with a fresh full list. Returns True if applied."""
        self._request_seq += 1
        request_no = self._request_seq
        self._in_flight += 1
        self._loading = True
        try:
            bookings = await self._repository.list_bookings()
        except Exception as e:
            # Keep the previous snapshot; the next signal retries
            self._logger.error("Booking reload failed", extra={"request_no": request_no, "error": str(e)})
            return False
        finally:
            self._in_flight -= 1
            self._loading = self._in_flight > 0

        if request_no <= self._applied_seq:
            self._logger.info(
                "Discarding stale booking reload",
                extra={"request_no": request_no, "reason": f"applied={self._applied_seq}"},
            )
            return False

        self._snapshot = tuple(bookings)
        self._applied_seq = request_no
        self._version += 1
        self._logger.debug("Booking snapshot replaced", extra={"request_no": request_no, "count": len(bookings)})
        return True

    async def approve(self, booking_id: str) -> None:
        await self._change_status(booking_id, BookingStatus.approved)

    async def decline(self, booking_id: str) -> None:
        await self._change_status(booking_id, BookingStatus.declined)

    async def set_admin_notes(self, booking_id: str, admin_notes: str) -> None:
        try:
            await self._repository.update_notes(booking_id, admin_notes)
        except BookingNotFound:
            await self.reconcile()
            raise
        except Exception as e:
            self._logger.exception("Admin notes update failed", extra={"booking_id": booking_id, "error": str(e)})
            raise BookingSubmissionError() from e
        self._logger.info("Admin notes updated", extra={"booking_id": booking_id})
        await self.reconcile()

    async def _change_status(self, booking_id: str, status: BookingStatus) -> None:
        current = self.get(booking_id)
        if current is not None and not can_transition(current.status, status):
            raise InvalidStatusTransition(booking_id, current.status.value, status.value)

        try:
            await self._repository.update_status(booking_id, status)
        except (InvalidStatusTransition, BookingNotFound):
            # Another session got there first; pull the winning state
            await self.reconcile()
            raise
        except Exception as e:
            self._logger.exception("Status update failed", extra={"booking_id": booking_id, "status": status.value})
            raise BookingSubmissionError() from e
        self._logger.info("Booking status updated", extra={"booking_id": booking_id, "status": status.value})
        await self.reconcile()

    def _on_change(self) -> None:
        if self._signals is None or self._loop is None:
            return
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._signals.put_nowait, None)

    async def _drain_signals(self) -> None:
        assert self._signals is not None
        signals = self._signals
        while True:
            await signals.get()
            # Coalesce a burst of signals into one reload
            while not signals.empty():
                signals.get_nowait()
            await self.reconcile()
