# matching/users.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.db import models


class Difficulty(models.TextChoices):
    EASY = "easy", "Easy"
    MEDIUM = "medium", "Medium"
    HARD = "hard", "Hard"


class ConfirmationStatus(models.TextChoices):
    WAITING = "waiting", "Waiting"
    CONFIRMED = "confirmed", "Confirmed"
    TIMEOUT = "timeout", "Timed out"
    DECLINED = "declined", "Declined"


def _no_difficulties() -> dict[str, bool]:
    return {d.value: False for d in Difficulty}


@dataclass
class MatchingUser:
    """
    One user's participation record in the matching service.

    The pairing is stored as an id (matched_user_id) and resolved through the
    engine's registry, so two matched records never reference each other
    directly.
    """
    id: str
    email: str
    difficulties: dict[str, bool] = field(default_factory=_no_difficulties)
    topics: list[str] = field(default_factory=list)
    prog_langs: list[str] = field(default_factory=list)
    matched_user_id: Optional[str] = None
    confirmation_status: Optional[str] = None
    room_id: Optional[str] = None
    confirmation_deadline: Optional[datetime] = None
    # filled in for both sides once both confirm; read by the collaboration service
    handoff: Optional[dict] = None

    def selected_difficulties(self) -> list[str]:
        return [d.value for d in Difficulty if self.difficulties.get(d.value)]

    def __str__(self):
        return f"MatchingUser {self.id} <{self.email}> matched_with={self.matched_user_id}"


def find_common_topics(user1: MatchingUser, user2: MatchingUser) -> list[str]:
    return [topic for topic in user1.topics if topic in user2.topics]


def find_common_difficulties(user1: MatchingUser, user2: MatchingUser) -> list[str]:
    return [
        d.value for d in Difficulty
        if user1.difficulties.get(d.value) and user2.difficulties.get(d.value)
    ]


def has_common_difficulties(user1: MatchingUser, user2: MatchingUser) -> bool:
    return bool(find_common_difficulties(user1, user2))


def find_common_prog_langs(user1: MatchingUser, user2: MatchingUser) -> list[str]:
    return [lang for lang in user1.prog_langs if lang in user2.prog_langs]
