# matching/queue.py
# In-memory FIFO of matching users (one Django process).
from __future__ import annotations

from collections import deque

from .errors import DuplicateUserError, EmptyQueueError
from .users import MatchingUser


class UserQueue:
    """
    Ordered holding area for users, oldest first.

    Used both for users waiting to be matched and for matched pairs waiting
    to confirm. Insertion order is the only ordering: no priority by
    difficulty or topic.
    """

    def __init__(self, name: str = "matching"):
        self.name = name
        self._queue: deque[MatchingUser] = deque()

    def push(self, user: MatchingUser) -> None:
        if self.contains_user(user.id):
            raise DuplicateUserError(user.id)
        self._queue.append(user)

    def peek(self, index: int = 0) -> MatchingUser:
        if self.is_empty():
            raise EmptyQueueError("peek", self.name)
        return self._queue[index]

    def pop_front(self) -> MatchingUser:
        if self.is_empty():
            raise EmptyQueueError("pop", self.name)
        return self._queue.popleft()

    def remove_user(self, user: MatchingUser) -> bool:
        """Remove the entry with user's id wherever it sits. False if absent."""
        for i, queued in enumerate(self._queue):
            if queued.id == user.id:
                del self._queue[i]
                return True
        return False

    def count(self) -> int:
        return len(self._queue)

    def is_empty(self) -> bool:
        return self.count() == 0

    def contains_user(self, user_id: str) -> bool:
        return any(u.id == user_id for u in self._queue)

    def list_user_ids(self) -> list[str]:
        return [u.id for u in self._queue]

    def list_user_emails(self) -> list[str]:
        return [u.email for u in self._queue]

    def __iter__(self):
        return iter(list(self._queue))

    def __len__(self) -> int:
        return self.count()

    def __repr__(self):
        return f"<UserQueue {self.name} {self.list_user_ids()}>"
