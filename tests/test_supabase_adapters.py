"""
Tests for the Supabase adapters against an in-memory stand-in for the async
Supabase client (query builders, channels and auth).
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError
from supabase import AuthApiError

from app.application.exceptions import (
    AuthenticationError,
    BookingNotFound,
    InvalidStatusTransition,
    RepositoryError,
)
from app.domain.entities.booking import BookingStatus
from app.domain.entities.booking_request import BookingRequest
from app.infrastructure.supabase.admin_auth import SupabaseAdminAuth
from app.infrastructure.supabase.postgrest_repository import PostgrestBookingRepository
from app.infrastructure.supabase.realtime_feed import CHANNEL_NAME, RealtimeChangeFeed

ANON_KEY = "anon-key"

BOOKING_ROW = {
    "id": "b-1",
    "phone_number": "+48 123 456 789",
    "booking_date": "2024-03-05",
    "booking_time": "09:00",
    "car_vin": None,
    "car_plate": "WX1",
    "service_type": "oilChange",
    "price": 49.99,
    "status": "approved",
    "customer_notes": None,
    "admin_notes": "ok",
    "created_at": "2024-03-01T10:00:00Z",
    "updated_at": "2024-03-02T10:00:00+00:00",
}


class FakeQuery:
    def __init__(self, client: FakeClient, table: str) -> None:
        self.client = client
        self.table = table
        self.token = client.postgrest.token
        self.calls: list[tuple] = []

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", *args, **kwargs)

    def in_(self, *args, **kwargs):
        return self._record("in_", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", *args, **kwargs)

    @property
    def action(self) -> str:
        return self.calls[0][0]

    def args_of(self, name: str) -> list[tuple]:
        return [args for call, args, _ in self.calls if call == name]

    async def execute(self):
        self.client.queries.append(self)
        return SimpleNamespace(data=self.client.handler(self))


class FakePostgrest:
    def __init__(self) -> None:
        self.token: str | None = None

    def auth(self, token: str) -> None:
        self.token = token


class FakeChannel:
    def __init__(self, name: str) -> None:
        self.name = name
        self.bindings: list[dict] = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.bindings.append({"event": event, "schema": schema, "table": table, "callback": callback})
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        return self


class FakeRealtime:
    def __init__(self) -> None:
        self.tokens: list[str | None] = []

    async def set_auth(self, token):
        self.tokens.append(token)


class FakeAuth:
    def __init__(self) -> None:
        self.signed_out: list[str] = []
        self.admin = SimpleNamespace(sign_out=self._admin_sign_out)

    async def sign_in_with_password(self, credentials):
        if credentials["password"] != "right":
            raise AuthApiError("Invalid login credentials", 400, "invalid_credentials")
        user = SimpleNamespace(id="u1", email=credentials["email"])
        return SimpleNamespace(session=SimpleNamespace(access_token="jwt"), user=user)

    async def get_user(self, jwt=None):
        if jwt != "jwt":
            raise AuthApiError("invalid JWT", 401, "bad_jwt")
        return SimpleNamespace(user=SimpleNamespace(id="u1", email="a@b.c"))

    async def _admin_sign_out(self, jwt, scope="global"):
        self.signed_out.append(jwt)


class FakeClient:
    def __init__(self, handler=None) -> None:
        self.handler = handler or (lambda query: [])
        self.postgrest = FakePostgrest()
        self.realtime = FakeRealtime()
        self.auth = FakeAuth()
        self.queries: list[FakeQuery] = []
        self.channels: list[FakeChannel] = []
        self.removed: list[FakeChannel] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)


class FakeProvider:
    api_key = ANON_KEY

    def __init__(self, client: FakeClient) -> None:
        self.client = client
        self.closed = False

    async def get(self) -> FakeClient:
        return self.client

    async def aclose(self) -> None:
        self.closed = True


def _repository(handler, change_feed=None) -> tuple[PostgrestBookingRepository, FakeClient]:
    client = FakeClient(handler)
    return PostgrestBookingRepository(provider=FakeProvider(client), change_feed=change_feed), client


async def _wait_for(predicate, attempts: int = 50) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def test_list_bookings_orders_and_parses_rows():
    repo, client = _repository(lambda query: [BOOKING_ROW])

    bookings = asyncio.run(repo.list_bookings())

    query = client.queries[0]
    assert query.table == "bookings"
    assert query.args_of("order") == [("booking_date",), ("booking_time",)]
    assert query.token == ANON_KEY
    booking = bookings[0]
    assert booking.booking_date == date(2024, 3, 5)
    assert booking.price == Decimal("49.99")
    assert booking.status == BookingStatus.approved
    assert booking.created_at is not None and booking.created_at.tzinfo is not None


def test_create_sends_pending_row_and_returns_id():
    repo, client = _repository(lambda query: [{**BOOKING_ROW, "id": "new-id", "status": "pending"}])

    new_id = asyncio.run(
        repo.create(
            BookingRequest(
                phone_number="555",
                booking_date=date(2024, 3, 5),
                booking_time="09:00",
                car_plate="WX1",
                service_type="oilChange",
                price=Decimal("49.99"),
            )
        )
    )

    assert new_id == "new-id"
    (row,) = client.queries[0].args_of("insert")[0]
    assert row["status"] == "pending"
    assert row["booking_date"] == "2024-03-05"
    assert row["price"] == 49.99
    assert row["car_vin"] is None


def test_update_status_only_matches_pending_or_same_status_rows():
    repo, client = _repository(lambda query: [BOOKING_ROW])

    asyncio.run(repo.update_status("b-1", BookingStatus.approved))

    query = client.queries[0]
    assert query.action == "update"
    (body,) = query.args_of("update")[0]
    assert body["status"] == "approved"
    assert "updated_at" in body
    assert query.args_of("eq") == [("id", "b-1")]
    assert query.args_of("in_") == [("status", ["pending", "approved"])]


def test_update_status_on_terminal_row_is_rejected():
    def handler(query: FakeQuery):
        if query.action == "update":
            return []
        return [{"status": "approved"}]

    repo, _ = _repository(handler)
    with pytest.raises(InvalidStatusTransition) as exc_info:
        asyncio.run(repo.update_status("b-1", BookingStatus.declined))

    assert exc_info.value.current == "approved"
    assert exc_info.value.target == "declined"


def test_updates_on_missing_rows_raise_not_found():
    repo, _ = _repository(lambda query: [])

    with pytest.raises(BookingNotFound):
        asyncio.run(repo.update_status("nope", BookingStatus.approved))
    with pytest.raises(BookingNotFound):
        asyncio.run(repo.update_notes("nope", "x"))


def test_store_errors_become_repository_errors():
    def handler(query: FakeQuery):
        raise APIError({"message": "boom", "code": "500", "hint": None, "details": None})

    repo, _ = _repository(handler)
    with pytest.raises(RepositoryError, match="boom"):
        asyncio.run(repo.list_bookings())


def test_admin_token_is_sent_with_store_writes():
    repo, client = _repository(lambda query: [BOOKING_ROW])

    repo.use_access_token("admin-jwt")
    asyncio.run(repo.update_status("b-1", BookingStatus.approved))
    asyncio.run(repo.update_notes("b-1", "ok"))

    assert [q.token for q in client.queries] == ["admin-jwt", "admin-jwt"]

    repo.use_access_token(None)
    asyncio.run(repo.list_bookings())
    assert client.queries[-1].token == ANON_KEY


def test_catalog_queries_filter_active_and_order():
    def handler(query: FakeQuery):
        assert query.args_of("eq") == [("active", True)]
        if query.table == "service_types":
            assert query.args_of("order") == [("base_price",)]
            return [{"id": 1, "name_key": "oilChange", "base_price": 50, "duration_minutes": 30, "active": True}]
        assert query.args_of("order") == [("order_index",)]
        return [{"id": 7, "time_slot": "09:00", "order_index": 1, "active": True}]

    repo, _ = _repository(handler)
    services = asyncio.run(repo.list_service_offerings())
    slots = asyncio.run(repo.list_time_slots())

    assert services[0].id == "1"
    assert services[0].base_price == Decimal("50")
    assert slots[0].time_slot == "09:00"


def test_repository_without_feed_cannot_subscribe():
    repo, _ = _repository(lambda query: [])

    with pytest.raises(RepositoryError):
        repo.subscribe_to_changes(lambda: None)


def test_realtime_feed_opens_one_channel_and_tears_it_down():
    async def run():
        client = FakeClient()
        provider = FakeProvider(client)
        feed = RealtimeChangeFeed(provider=provider)
        calls: list[str] = []

        first = feed.add_listener(lambda: calls.append("first"))
        second = feed.add_listener(lambda: calls.append("second"))
        assert feed.is_running
        await _wait_for(lambda: client.channels and client.channels[0].subscribed)

        assert len(client.channels) == 1
        channel = client.channels[0]
        assert channel.name == CHANNEL_NAME
        binding = channel.bindings[0]
        assert (binding["event"], binding["schema"], binding["table"]) == ("*", "public", "bookings")

        binding["callback"]({"eventType": "INSERT"})
        assert calls == ["first", "second"]

        first.unsubscribe()
        first.unsubscribe()
        assert feed.is_running

        second.unsubscribe()
        assert not feed.is_running
        await _wait_for(lambda: client.removed == [channel])

        binding["callback"]({"eventType": "UPDATE"})
        assert calls == ["first", "second"]

        await feed.close()
        assert provider.closed

    asyncio.run(run())


def test_realtime_feed_joins_with_the_admin_token():
    async def run():
        client = FakeClient()
        feed = RealtimeChangeFeed(provider=FakeProvider(client))
        repo = PostgrestBookingRepository(provider=FakeProvider(FakeClient()), change_feed=feed)

        repo.use_access_token("admin-jwt")
        subscription = repo.subscribe_to_changes(lambda: None)
        await _wait_for(lambda: client.channels and client.channels[0].subscribed)
        assert client.realtime.tokens == ["admin-jwt"]

        repo.use_access_token(None)
        await _wait_for(lambda: len(client.realtime.tokens) == 2)
        assert client.realtime.tokens[-1] == ANON_KEY

        subscription.unsubscribe()
        await feed.close()

    asyncio.run(run())


def test_admin_auth_sign_in_current_user_and_sign_out():
    client = FakeClient()
    provider = FakeProvider(client)
    auth = SupabaseAdminAuth(provider=provider)

    async def run():
        session = await auth.sign_in("a@b.c", "right")
        assert session.access_token == "jwt"
        assert session.user.email == "a@b.c"
        assert (await auth.current_user("jwt")).email == "a@b.c"
        assert await auth.current_user("other") is None
        assert await auth.current_user(None) is None
        await auth.sign_out("jwt")
        with pytest.raises(AuthenticationError):
            await auth.sign_in("a@b.c", "wrong")
        await auth.aclose()

    asyncio.run(run())

    assert client.auth.signed_out == ["jwt"]
    assert provider.closed
