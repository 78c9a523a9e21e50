from __future__ import annotations

import logging
from typing import Any

import httpx
from supabase import AuthError

from app.application.exceptions import AuthenticationError
from app.application.ports.auth import AdminSession, AdminUser, AuthPort
from app.infrastructure.supabase.client import SupabaseClientProvider


class SupabaseAdminAuth(AuthPort):
    """Email/password admin sessions through the Supabase client's auth API."""

    def __init__(self, provider: SupabaseClientProvider) -> None:
        self._provider = provider
        self._logger = logging.getLogger(__name__)

    async def sign_in(self, email: str, password: str) -> AdminSession:
        client = await self._provider.get()
        try:
            response = await client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as e:
            self._logger.info("Admin sign-in rejected", extra={"reason": str(e)})
            raise AuthenticationError("Invalid email or password") from e
        except httpx.HTTPError as e:
            self._logger.error("Auth request failed", extra={"error": str(e)})
            raise AuthenticationError("Authentication service unavailable") from e

        if response.session is None or response.user is None:
            raise AuthenticationError("Invalid email or password")
        return AdminSession(access_token=response.session.access_token, user=_admin_user(response.user))

    async def current_user(self, access_token: str | None) -> AdminUser | None:
        if not access_token:
            return None
        client = await self._provider.get()
        try:
            response = await client.auth.get_user(access_token)
        except AuthError:
            return None
        except httpx.HTTPError as e:
            self._logger.error("Auth request failed", extra={"error": str(e)})
            return None
        if response is None or response.user is None:
            return None
        return _admin_user(response.user)

    async def sign_out(self, access_token: str) -> None:
        client = await self._provider.get()
        try:
            await client.auth.admin.sign_out(access_token)
        except (AuthError, httpx.HTTPError) as e:
            self._logger.warning("Admin sign-out rejected", extra={"error": str(e)})

    async def aclose(self) -> None:
        await self._provider.aclose()


def _admin_user(user: Any) -> AdminUser:
    return AdminUser(id=str(user.id), email=user.email or "")
