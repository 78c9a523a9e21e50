"""
Tests for the admin booking view model: reconciliation, filtering, counts and
status transitions.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from app.application.exceptions import BookingNotFound, InvalidStatusTransition, RepositoryError
from app.application.view_models.booking_view_model import BookingViewModel
from app.domain.entities.booking import BookingStats, BookingStatus, StatusFilter
from app.domain.entities.booking_request import BookingRequest
from app.infrastructure.store.memory_store import MemoryBookingRepository


def _request(day: int = 5, time: str = "09:00", plate: str = "WX1") -> BookingRequest:
    return BookingRequest(
        phone_number="+48 123 456 789",
        booking_date=date(2024, 3, day),
        booking_time=time,
        car_plate=plate,
        service_type="oilChange",
        price=Decimal("50"),
    )


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


async def _seed(repo: MemoryBookingRepository, statuses: list[BookingStatus]) -> list[str]:
    ids = []
    for index, status in enumerate(statuses):
        booking_id = await repo.create(_request(day=index + 1, plate=f"P{index}"))
        if status != BookingStatus.pending:
            await repo.update_status(booking_id, status)
        ids.append(booking_id)
    return ids


def test_initial_state_is_empty_and_loading():
    vm = BookingViewModel(MemoryBookingRepository())

    assert vm.bookings == []
    assert vm.loading is True
    assert vm.status_filter == StatusFilter.all
    assert vm.stats == BookingStats()


def test_reconcile_twice_is_idempotent():
    async def run():
        repo = MemoryBookingRepository()
        await _seed(repo, [BookingStatus.pending, BookingStatus.approved, BookingStatus.declined])
        vm = BookingViewModel(repo)

        assert await vm.reconcile() is True
        first_snapshot, first_stats = vm.bookings, vm.stats
        assert await vm.reconcile() is True

        assert vm.bookings == first_snapshot
        assert vm.stats == first_stats
        assert vm.loading is False

    asyncio.run(run())


def test_snapshot_is_ordered_by_date_then_time():
    async def run():
        repo = MemoryBookingRepository()
        await repo.create(_request(day=7, time="08:00", plate="C"))
        await repo.create(_request(day=5, time="14:00", plate="B"))
        await repo.create(_request(day=5, time="09:00", plate="A"))
        vm = BookingViewModel(repo)
        await vm.reconcile()

        assert [b.car_plate for b in vm.bookings] == ["A", "B", "C"]

    asyncio.run(run())


def test_aggregate_counts():
    async def run():
        repo = MemoryBookingRepository()
        await _seed(
            repo,
            [
                BookingStatus.pending,
                BookingStatus.pending,
                BookingStatus.approved,
                BookingStatus.declined,
                BookingStatus.approved,
            ],
        )
        vm = BookingViewModel(repo)
        await vm.reconcile()
        vm.set_status_filter(StatusFilter.declined)

        # Counts always come from the full snapshot, not the filtered view
        assert vm.stats == BookingStats(total=5, pending=2, approved=2, declined=1)

    asyncio.run(run())


def test_filtered_view_matches_status_exactly():
    async def run():
        repo = MemoryBookingRepository()
        await _seed(
            repo,
            [BookingStatus.pending, BookingStatus.approved, BookingStatus.declined, BookingStatus.approved],
        )
        vm = BookingViewModel(repo)
        await vm.reconcile()

        for status_filter in StatusFilter:
            vm.set_status_filter(status_filter)
            filtered = vm.filtered_bookings
            if status_filter == StatusFilter.all:
                assert filtered == vm.bookings
            else:
                expected = [b for b in vm.bookings if b.status.value == status_filter.value]
                assert filtered == expected
                assert all(b.status.value == status_filter.value for b in filtered)

        assert len(vm.select("approved")) == 2
        assert vm.status_filter == StatusFilter.declined

    asyncio.run(run())


def test_approved_booking_cannot_be_declined():
    async def run():
        repo = MemoryBookingRepository()
        booking_id = await repo.create(_request())
        async with BookingViewModel(repo) as vm:
            await vm.approve(booking_id)
            assert vm.get(booking_id).status == BookingStatus.approved

            with pytest.raises(InvalidStatusTransition):
                await vm.decline(booking_id)

            assert vm.get(booking_id).status == BookingStatus.approved
        stored = await repo.list_bookings()
        assert stored[0].status == BookingStatus.approved

    asyncio.run(run())


def test_losing_session_is_rejected_by_store_and_self_corrects():
    async def run():
        repo = MemoryBookingRepository()
        booking_id = await repo.create(_request())
        first = BookingViewModel(repo)
        second = BookingViewModel(repo)
        await first.reconcile()
        await second.reconcile()

        await first.approve(booking_id)
        # second still shows pending, so only the store can refuse the decline
        assert second.get(booking_id).status == BookingStatus.pending
        with pytest.raises(InvalidStatusTransition):
            await second.decline(booking_id)

        assert second.get(booking_id).status == BookingStatus.approved

    asyncio.run(run())


def test_repeating_the_same_status_is_idempotent():
    async def run():
        repo = MemoryBookingRepository()
        booking_id = await repo.create(_request())
        vm = BookingViewModel(repo)
        await vm.reconcile()

        await vm.approve(booking_id)
        await vm.approve(booking_id)

        assert vm.get(booking_id).status == BookingStatus.approved

    asyncio.run(run())


def test_status_and_notes_updates_refresh_updated_at():
    async def run():
        repo = MemoryBookingRepository()
        booking_id = await repo.create(_request())
        vm = BookingViewModel(repo)
        await vm.reconcile()
        created = vm.get(booking_id)

        await vm.set_admin_notes(booking_id, "Customer brings own oil")
        noted = vm.get(booking_id)

        assert noted.admin_notes == "Customer brings own oil"
        assert noted.customer_notes == created.customer_notes
        assert noted.updated_at >= created.updated_at
        assert noted.status == BookingStatus.pending

    asyncio.run(run())


def test_unknown_booking_raises_not_found():
    async def run():
        vm = BookingViewModel(MemoryBookingRepository())
        await vm.reconcile()

        with pytest.raises(BookingNotFound):
            await vm.approve("missing")
        with pytest.raises(BookingNotFound):
            await vm.set_admin_notes("missing", "x")

    asyncio.run(run())


class _FlakyRepository(MemoryBookingRepository):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    async def list_bookings(self):
        if self.fail:
            raise RepositoryError("store unavailable")
        return await super().list_bookings()


def test_failed_reload_keeps_previous_snapshot():
    async def run():
        repo = _FlakyRepository()
        await repo.create(_request())
        vm = BookingViewModel(repo)
        await vm.reconcile()
        version = vm.version

        repo.fail = True
        await repo.create(_request(day=6))
        assert await vm.reconcile() is False

        assert len(vm.bookings) == 1
        assert vm.version == version
        assert vm.loading is False

        repo.fail = False
        assert await vm.reconcile() is True
        assert len(vm.bookings) == 2

    asyncio.run(run())


class _SlowFirstRepository(MemoryBookingRepository):
    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.calls = 0

    async def list_bookings(self):
        self.calls += 1
        snapshot = await super().list_bookings()
        if self.calls == 1:
            await self.gate.wait()
        return snapshot


def test_stale_reload_does_not_overwrite_newer_one():
    async def run():
        repo = _SlowFirstRepository()
        await repo.create(_request(day=1))
        vm = BookingViewModel(repo)

        slow = asyncio.create_task(vm.reconcile())
        await asyncio.sleep(0)
        await repo.create(_request(day=2))
        assert await vm.reconcile() is True
        assert len(vm.bookings) == 2
        assert vm.loading is True  # the slow request is still in flight

        repo.gate.set()
        assert await slow is False
        assert len(vm.bookings) == 2
        assert vm.loading is False

    asyncio.run(run())


def test_change_feed_signal_triggers_reload_and_close_unsubscribes():
    async def run():
        repo = MemoryBookingRepository()
        vm = BookingViewModel(repo)
        await vm.start()
        assert repo.subscriber_count == 1
        assert vm.bookings == []

        # A write from another session only reaches us through the feed
        await repo.create(_request())
        await repo.create(_request(day=6))
        await _wait_for(lambda: len(vm.bookings) == 2)

        await vm.close()
        assert repo.subscriber_count == 0
        assert not vm.is_running

        await repo.create(_request(day=7))
        await asyncio.sleep(0.05)
        assert len(vm.bookings) == 2

    asyncio.run(run())
