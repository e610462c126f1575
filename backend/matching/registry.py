# matching/registry.py
from __future__ import annotations

from typing import Optional

from .users import MatchingUser


class UserRegistry:
    """Authoritative id -> MatchingUser mapping for everyone in the matching service."""

    def __init__(self):
        self._users: dict[str, MatchingUser] = {}

    def add_user(self, user_id: str, user: MatchingUser) -> None:
        self._users[user_id] = user

    def get_user(self, user_id: str) -> Optional[MatchingUser]:
        return self._users.get(user_id)

    def remove_user(self, user_id: str) -> None:
        self._users.pop(user_id, None)

    def has_user(self, user_id: str) -> bool:
        return user_id in self._users

    def user_ids(self) -> list[str]:
        return list(self._users)

    def __contains__(self, user_id) -> bool:
        return self.has_user(user_id)

    def __len__(self) -> int:
        return len(self._users)

    def __str__(self):
        return "\n".join(f"{uid} : {user}" for uid, user in self._users.items())
