"""Cashier identity provider.

Real authentication is outside the POS core. The session here only needs to
answer "who is ringing up this sale", backed by a small user directory.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Dict, Iterable, Optional, Tuple

from . import log
from .constants import UserRole
from .errors import AuthorizationError


@dataclass(frozen=True)
class User:
    """Operator account."""

    id: str
    username: str
    name: str
    role: UserRole
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class Cashier:
    """Identity stamped on each committed transaction."""

    id: str
    name: str


class UserDirectory:
    """Username to ``(user, password)`` lookup."""

    def __init__(self, entries: Iterable[Tuple[User, str]] = ()) -> None:
        self._entries: Dict[str, Tuple[User, str]] = {user.username: (user, password) for user, password in entries}

    def verify(self, username: str, password: str) -> User:
        """Return the user for valid credentials.

        Raises:
            AuthorizationError: For unknown users, wrong passwords, or
                inactive accounts.
        """

        entry = self._entries.get(username)
        if entry is None or not hmac.compare_digest(entry[1].encode(), password.encode()):
            log.warning("Login rejected for username '%s'", username)
            raise AuthorizationError("Invalid username or password")
        user = entry[0]
        if not user.is_active:
            log.warning("Login rejected for inactive user '%s'", username)
            raise AuthorizationError(f"User '{username}' is inactive")
        return user


def development_directory(now: Optional[datetime] = None) -> UserDirectory:
    """Return the built-in ``admin``/``cashier`` accounts."""

    created = now or datetime.now(UTC)
    return UserDirectory(
        [
            (User("1", "admin", "Administrator", UserRole.ADMIN, True, created), "admin"),
            (User("2", "cashier", "Cashier User", UserRole.CASHIER, True, created), "cashier"),
        ]
    )


class AuthSession:
    """Current login state for the till."""

    def __init__(
        self,
        user: Optional[User] = None,
        *,
        on_change: Optional[Callable[["AuthSession"], None]] = None,
    ) -> None:
        self._user = user
        self.on_change = on_change

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def login(self, username: str, password: str, directory: UserDirectory) -> User:
        user = directory.verify(username, password)
        self._user = user
        log.info("User '%s' logged in", user.username)
        self._changed()
        return user

    def logout(self) -> None:
        if self._user is None:
            return
        log.info("User '%s' logged out", self._user.username)
        self._user = None
        self._changed()

    def current_cashier(self) -> Optional[Cashier]:
        if self._user is None:
            return None
        return Cashier(id=self._user.id, name=self._user.name)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)


__all__ = ["User", "Cashier", "UserDirectory", "development_directory", "AuthSession"]
