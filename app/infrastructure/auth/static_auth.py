from __future__ import annotations

import hmac
import logging
import secrets

from app.application.exceptions import AuthenticationError
from app.application.ports.auth import AdminSession, AdminUser, AuthPort


class StaticAdminAuth(AuthPort):
    """Single configured admin account with in-process session tokens. Dev/local only."""

    def __init__(self, email: str, password: str) -> None:
        self._email = email
        self._password = password
        self._sessions: dict[str, AdminUser] = {}
        self._logger = logging.getLogger(__name__)

    async def sign_in(self, email: str, password: str) -> AdminSession:
        email_ok = hmac.compare_digest(_normalized(email), _normalized(self._email))
        password_ok = hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if not (email_ok and password_ok):
            self._logger.info("Admin sign-in rejected", extra={"reason": "bad_credentials"})
            raise AuthenticationError("Invalid email or password")

        token = secrets.token_urlsafe(32)
        user = AdminUser(id="static-admin", email=self._email)
        self._sessions[token] = user
        return AdminSession(access_token=token, user=user)

    async def current_user(self, access_token: str | None) -> AdminUser | None:
        if not access_token:
            return None
        return self._sessions.get(access_token)

    async def sign_out(self, access_token: str) -> None:
        self._sessions.pop(access_token, None)


def _normalized(email: str) -> bytes:
    return email.strip().lower().encode("utf-8")
