# matching/engine.py
from __future__ import annotations

import logging
from typing import Optional

from .errors import MatchingInvariantError, NotRegisteredError
from .queue import UserQueue
from .registry import UserRegistry
from .users import MatchingUser

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Pairs waiting users and tracks matched pairs until they confirm.

    Lifecycle of a user: not registered -> waiting (wait queue) -> matched
    (confirmation queue) -> confirmed or dismissed -> removed.

    Nothing here locks. Callers that can run concurrently must hold one lock
    around every call (see MatchingConfig.lock).
    """

    def __init__(self):
        self.users = UserRegistry()
        self.matching_queue = UserQueue("matching")
        self.confirmation_queue = UserQueue("confirmation")

    # ---- lookups

    def is_user_in_matching_service(self, user_token: str) -> bool:
        return self.users.has_user(user_token)

    def get_user(self, user_token: str) -> MatchingUser:
        user = self.users.get_user(user_token)
        if user is None:
            raise NotRegisteredError(user_token)
        return user

    def is_user_matched(self, user_token: str) -> bool:
        return self.get_user(user_token).matched_user_id is not None

    def is_user_waiting(self, user_token: str) -> bool:
        return self.matching_queue.contains_user(user_token)

    def is_user_in_confirmation(self, user_token: str) -> bool:
        return self.confirmation_queue.contains_user(user_token)

    def get_matched_user(self, user_token: str) -> Optional[MatchingUser]:
        user = self.get_user(user_token)
        if user.matched_user_id is None:
            return None
        other = self.users.get_user(user.matched_user_id)
        if other is None or other.matched_user_id != user.id:
            self._fail(
                "user %s points at %s, which does not point back" % (user.id, user.matched_user_id)
            )
        return other

    def length(self) -> int:
        return self.matching_queue.count()

    def __len__(self) -> int:
        return self.length()

    def get_index(self, index: int) -> MatchingUser:
        return self.matching_queue.peek(index)

    # ---- state changes

    def push(self, user: MatchingUser) -> None:
        if self.is_user_in_matching_service(user.id):
            logger.debug("User %s already in matching service; ignoring start", user.id)
            return
        self.matching_queue.push(user)
        self.users.add_user(user.id, user)
        logger.info("User %s started matching (queue size=%s)", user.id, self.length())

    def try_match_with(self, user_token: str) -> bool:
        """
        Match the caller with the user at the front of the wait queue.

        Returns False when the queue is empty, when the front user is the
        caller, or when the caller is not in the wait queue (already matched
        or dismissed).
        """
        if self.matching_queue.is_empty():
            return False
        user = self.get_user(user_token)
        if not self.matching_queue.contains_user(user.id):
            return False

        if self.matching_queue.peek(0).id == user.id:
            return False

        other = self.matching_queue.pop_front()
        self.matching_queue.remove_user(user)
        self.match_two_users_together(other, user)
        return True

    def match_two_users_together(self, user1: MatchingUser, user2: MatchingUser) -> None:
        if user1.id == user2.id:
            self._fail("cannot match user %s with themself" % user1.id)
        if user1.matched_user_id is not None:
            self._fail("user %s already matched with %s" % (user1.id, user1.matched_user_id))
        if user2.matched_user_id is not None:
            self._fail("user %s already matched with %s" % (user2.id, user2.matched_user_id))

        logger.info("Matching user %s and user %s together", user1.id, user2.id)
        user1.matched_user_id = user2.id
        user2.matched_user_id = user1.id

        self.matching_queue.remove_user(user1)
        self.matching_queue.remove_user(user2)
        self.confirmation_queue.push(user1)
        self.confirmation_queue.push(user2)

    def dismiss_matched_users_after_not_getting_ready(
        self, user1: MatchingUser, user2: MatchingUser
    ) -> None:
        if user1.matched_user_id != user2.id or user2.matched_user_id != user1.id:
            self._fail(
                "cannot dismiss %s (-> %s) and %s (-> %s): not matched together"
                % (user1.id, user1.matched_user_id, user2.id, user2.matched_user_id)
            )
        user1.matched_user_id = None
        user2.matched_user_id = None
        logger.info("Dismissed match between %s and %s", user1.id, user2.id)

    def hand_off_matched_users(self, user1: MatchingUser, user2: MatchingUser) -> None:
        """Release a confirmed pair; room_id and handoff now carry the pairing."""
        if user1.matched_user_id != user2.id or user2.matched_user_id != user1.id:
            self._fail(
                "cannot hand off %s (-> %s) and %s (-> %s): not matched together"
                % (user1.id, user1.matched_user_id, user2.id, user2.matched_user_id)
            )
        user1.matched_user_id = None
        user2.matched_user_id = None
        logger.info("Handed off %s and %s to collaboration", user1.id, user2.id)

    def cancel_matching(self, user_token: str) -> None:
        if not self.is_user_in_matching_service(user_token):
            return
        self.matching_queue.remove_user(self.get_user(user_token))
        self.users.remove_user(user_token)
        logger.info("User %s cancelled matching", user_token)

    def remove_user_from_matching(self, user_token: str) -> None:
        user = self.get_user(user_token)
        self.matching_queue.remove_user(user)
        self.users.remove_user(user_token)
        logger.info("User %s removed from matching", user_token)

    def remove_user_from_confirmation(self, user_token: str) -> None:
        user = self.get_user(user_token)
        self.confirmation_queue.remove_user(user)
        self.users.remove_user(user_token)
        logger.info("User %s removed from confirmation", user_token)

    def _fail(self, message: str):
        logger.error("Matching state corrupted: %s", message)
        raise MatchingInvariantError(message)
