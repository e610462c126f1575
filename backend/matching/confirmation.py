# matching/confirmation.py
"""
Readiness handshake for matched pairs.

After the engine pairs two users, both have MATCHING_CONFIRMATION_TIMEOUT_SECONDS
to confirm. Expiry is checked lazily whenever either side polls, so there is
no background timer; the engine itself never looks at the clock.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .engine import MatchingEngine
from .errors import NotMatchedError
from .users import (
    ConfirmationStatus,
    MatchingUser,
    find_common_difficulties,
    find_common_prog_langs,
    find_common_topics,
)

logger = logging.getLogger(__name__)

_DISMISSED = (ConfirmationStatus.TIMEOUT, ConfirmationStatus.DECLINED)


@dataclass
class ConfirmationOutcome:
    status: str
    room_id: Optional[str] = None
    matched_user: Optional[MatchingUser] = None
    handoff: Optional[dict] = None


def _timeout_seconds() -> int:
    return int(getattr(settings, "MATCHING_CONFIRMATION_TIMEOUT_SECONDS", 30))


def _abandoned_after_seconds() -> int:
    return int(getattr(settings, "MATCHING_ABANDONED_AFTER_SECONDS", 300))


def describe_pair(user1: MatchingUser, user2: MatchingUser) -> dict:
    """What the two users have in common; handed to the collaboration service."""
    return {
        "topics": find_common_topics(user1, user2),
        "difficulties": find_common_difficulties(user1, user2),
        "progLangs": find_common_prog_langs(user1, user2),
    }


def _matched_pair(engine: MatchingEngine, user_token: str) -> tuple[MatchingUser, MatchingUser]:
    user = engine.get_user(user_token)
    other = engine.get_matched_user(user_token)
    if other is None:
        raise NotMatchedError(user_token)
    return user, other


def begin_confirmation(engine: MatchingEngine, user_token: str, now: datetime | None = None) -> None:
    user, other = _matched_pair(engine, user_token)
    deadline = (now or timezone.now()) + timedelta(seconds=_timeout_seconds())
    for u in (user, other):
        u.confirmation_status = ConfirmationStatus.WAITING
        u.confirmation_deadline = deadline
        u.room_id = None
    logger.info("Confirmation started for %s and %s (deadline=%s)", user.id, other.id, deadline.isoformat())


def respond(engine: MatchingEngine, user_token: str, accept: bool = True) -> str:
    user = engine.get_user(user_token)
    if user.room_id:
        return ConfirmationStatus.CONFIRMED
    if user.matched_user_id is None:
        # Already dismissed: report what happened instead of flipping it.
        if user.confirmation_status in _DISMISSED:
            return user.confirmation_status
        raise NotMatchedError(user_token)

    if user.confirmation_status in (None, ConfirmationStatus.WAITING):
        user.confirmation_status = ConfirmationStatus.CONFIRMED if accept else ConfirmationStatus.DECLINED
        logger.info("User %s %s the match", user.id, user.confirmation_status)
    return user.confirmation_status


def _dismiss(engine: MatchingEngine, user: MatchingUser, other: MatchingUser, status: str) -> None:
    engine.dismiss_matched_users_after_not_getting_ready(user, other)
    user.confirmation_status = status
    other.confirmation_status = status


def _handoff(user: MatchingUser, other: MatchingUser, room_id: str) -> dict:
    return {
        "roomId": room_id,
        "matchedUserId": other.id,
        "matchedUserEmail": other.email,
        "common": describe_pair(user, other),
    }


def check_confirmation(
    engine: MatchingEngine, user_token: str, now: datetime | None = None
) -> ConfirmationOutcome:
    """
    Resolve the caller's handshake. Any final outcome (confirmed, declined,
    timeout) removes the caller from the matching service; the peer keeps its
    record until it polls too.
    """
    now = now or timezone.now()
    user = engine.get_user(user_token)

    # Final outcomes already decided by the peer's poll.
    if user.room_id:
        engine.remove_user_from_confirmation(user.id)
        return ConfirmationOutcome(
            status=ConfirmationStatus.CONFIRMED, room_id=user.room_id, handoff=user.handoff,
        )
    if user.matched_user_id is None:
        if user.confirmation_status in _DISMISSED:
            status = user.confirmation_status
            engine.remove_user_from_confirmation(user.id)
            return ConfirmationOutcome(status=status)
        raise NotMatchedError(user_token)

    user, other = _matched_pair(engine, user_token)
    statuses = (user.confirmation_status, other.confirmation_status)

    if all(s == ConfirmationStatus.CONFIRMED for s in statuses):
        room_id = uuid.uuid4().hex
        user.room_id = other.room_id = room_id
        user.handoff = _handoff(user, other, room_id)
        other.handoff = _handoff(other, user, room_id)
        engine.hand_off_matched_users(user, other)
        logger.info("Users %s and %s confirmed; room=%s", user.id, other.id, room_id)
        engine.remove_user_from_confirmation(user.id)
        return ConfirmationOutcome(
            status=ConfirmationStatus.CONFIRMED, room_id=room_id,
            matched_user=other, handoff=user.handoff,
        )

    if ConfirmationStatus.DECLINED in statuses:
        _dismiss(engine, user, other, ConfirmationStatus.DECLINED)
        engine.remove_user_from_confirmation(user.id)
        return ConfirmationOutcome(status=ConfirmationStatus.DECLINED)

    deadline = user.confirmation_deadline
    if deadline is not None and now >= deadline:
        logger.info("Confirmation between %s and %s timed out", user.id, other.id)
        _dismiss(engine, user, other, ConfirmationStatus.TIMEOUT)
        engine.remove_user_from_confirmation(user.id)
        return ConfirmationOutcome(status=ConfirmationStatus.TIMEOUT)

    return ConfirmationOutcome(status=ConfirmationStatus.WAITING, matched_user=other)


def withdraw(engine: MatchingEngine, user_token: str) -> None:
    """Cancel from any phase. Unknown tokens are ignored."""
    if not engine.is_user_in_matching_service(user_token):
        return

    user = engine.get_user(user_token)
    if user.matched_user_id is not None:
        other = engine.get_matched_user(user_token)
        _dismiss(engine, user, other, ConfirmationStatus.DECLINED)
        logger.info("User %s withdrew; match with %s declined", user.id, other.id)

    if engine.is_user_in_confirmation(user_token):
        engine.remove_user_from_confirmation(user_token)
    else:
        engine.cancel_matching(user_token)


def sweep_abandoned(engine: MatchingEngine, now: datetime | None = None) -> list[str]:
    """
    Drop confirmation-queue records nobody came back for.

    A record is abandoned once MATCHING_ABANDONED_AFTER_SECONDS have passed
    since its confirmation deadline, whatever its outcome. Returns the
    removed ids.
    """
    now = now or timezone.now()
    cutoff = timedelta(seconds=_abandoned_after_seconds())
    removed = []
    for user in engine.confirmation_queue:
        if not engine.is_user_in_matching_service(user.id):
            continue
        if user.confirmation_deadline is None or now < user.confirmation_deadline + cutoff:
            continue
        other = engine.get_matched_user(user.id)
        if other is not None:
            _dismiss(engine, user, other, ConfirmationStatus.TIMEOUT)
        engine.remove_user_from_confirmation(user.id)
        removed.append(user.id)
    if removed:
        logger.info("Swept abandoned confirmation records: %s", removed)
    return removed
