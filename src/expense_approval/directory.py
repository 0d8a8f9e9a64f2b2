"""User directory lookups."""

from __future__ import annotations

from collections.abc import Iterable

from .exceptions import NotFoundError
from .models import User


class UserDirectory:
    """In-memory user directory keyed by user id."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: dict[str, User] = {user.user_id: user for user in users}

    def add(self, user: User) -> User:
        self._users[user.user_id] = user
        return user

    def get_user(self, user_id: str) -> User:
        try:
            return self._users[user_id]
        except KeyError:
            raise NotFoundError("User", user_id) from None
