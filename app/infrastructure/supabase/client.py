from __future__ import annotations

import asyncio
import logging

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions


class SupabaseClientProvider:
    """
    Lazily creates one async Supabase client and hands it out.

    Each adapter owns its own provider so that a token applied to one client
    (an admin session on the PostgREST side, for example) never leaks into
    another adapter's requests.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        schema: str = "public",
        timeout: float = 10.0,
    ) -> None:
        if not url or not api_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required for the Supabase store")
        self.url = url
        self.api_key = api_key
        self._options = AsyncClientOptions(
            schema=schema,
            postgrest_client_timeout=timeout,
            auto_refresh_token=False,
            persist_session=False,
        )
        self._client: AsyncClient | None = None
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    async def get(self) -> AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = await acreate_client(self.url, self.api_key, options=self._options)
                self._logger.info("Supabase client created", extra={"reason": self.url})
            return self._client

    async def aclose(self) -> None:
        async with self._lock:
            client, self._client = self._client, None
        if client is None:
            return
        await client.remove_all_channels()
        await client.postgrest.aclose()
        await client.auth.close()
