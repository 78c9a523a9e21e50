"""
Supabase Realtime change feed for the bookings table.

Opens one `postgres_changes` channel through the Supabase client when the
first listener registers and removes it when the last one unsubscribes.
Payloads are ignored; listeners treat every call as a signal to reload.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.application.ports.booking_repository import ChangeCallback, Subscription
from app.infrastructure.supabase.client import SupabaseClientProvider

CHANNEL_NAME = "bookings_changes"


class _FeedSubscription(Subscription):
    def __init__(self, feed: RealtimeChangeFeed, callback: ChangeCallback) -> None:
        self._feed = feed
        self._callback = callback
        self._active = True

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove_listener(self._callback)


class RealtimeChangeFeed:
    def __init__(
        self,
        provider: SupabaseClientProvider,
        schema: str = "public",
        table: str = "bookings",
    ) -> None:
        self._provider = provider
        self._schema = schema
        self._table = table
        self._listeners: list[ChangeCallback] = []
        self._opening: asyncio.Task[None] | None = None
        self._channel: Any = None
        self._access_token: str | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._logger = logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return self._opening is not None

    def add_listener(self, callback: ChangeCallback) -> Subscription:
        self._listeners.append(callback)
        if self._opening is None:
            self._opening = asyncio.get_running_loop().create_task(self._open())
        return _FeedSubscription(self, callback)

    def use_access_token(self, access_token: str | None) -> None:
        self._access_token = access_token
        if self._channel is not None:
            self._spawn(self._apply_access_token())

    def handle_change(self, payload: dict[str, Any] | None = None) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as e:
                self._logger.error("Change listener failed", extra={"error": str(e)})

    async def close(self) -> None:
        self._listeners.clear()
        opening = self._opening
        self._teardown()
        if opening is not None:
            await opening
        if self._pending:
            await asyncio.gather(*self._pending)
        await self._provider.aclose()

    def _remove_listener(self, callback: ChangeCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)
        if not self._listeners:
            self._teardown()

    def _teardown(self) -> None:
        self._opening = None
        channel, self._channel = self._channel, None
        if channel is not None:
            self._spawn(self._remove_channel(channel))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _open(self) -> None:
        me = asyncio.current_task()
        try:
            client = await self._provider.get()
            if self._access_token:
                await client.realtime.set_auth(self._access_token)
            channel = client.channel(CHANNEL_NAME)
            channel.on_postgres_changes(
                "*",
                schema=self._schema,
                table=self._table,
                callback=self.handle_change,
            )
            await channel.subscribe(self._on_state)
        except Exception as e:
            self._logger.exception("Realtime feed failed to open", extra={"error": str(e)})
            return

        if self._opening is not me:
            # Every listener left while the channel was joining
            await self._remove_channel(channel)
            return
        self._channel = channel
        self._logger.info("Realtime feed subscribed", extra={"reason": f"{self._schema}.{self._table}"})

    def _on_state(self, state: Any, error: Exception | None = None) -> None:
        if error is not None:
            self._logger.warning("Realtime channel error", extra={"reason": str(state), "error": str(error)})
        else:
            self._logger.info("Realtime channel state", extra={"reason": str(state)})

    async def _apply_access_token(self) -> None:
        client = await self._provider.get()
        try:
            await client.realtime.set_auth(self._access_token or self._provider.api_key)
        except Exception as e:
            self._logger.warning("Realtime token refresh failed", extra={"error": str(e)})

    async def _remove_channel(self, channel: Any) -> None:
        client = await self._provider.get()
        try:
            await client.remove_channel(channel)
        except Exception as e:
            self._logger.warning("Realtime channel removal failed", extra={"error": str(e)})
