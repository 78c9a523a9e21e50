from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AdminUser:
    id: str
    email: str


@dataclass(frozen=True)
class AdminSession:
    access_token: str
    user: AdminUser


class AuthPort(ABC):
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AdminSession:
        """Raises AuthenticationError on bad credentials."""
        raise NotImplementedError

    @abstractmethod
    async def current_user(self, access_token: str | None) -> AdminUser | None:
        """Return the signed-in user for a token, or None."""
        raise NotImplementedError

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
