# matching/errors.py


class MatchingError(Exception):
    """Base class for everything the matching service raises on purpose."""


class DuplicateUserError(MatchingError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} is already matching.")
        self.user_id = user_id


class EmptyQueueError(MatchingError):
    def __init__(self, action: str, queue_name: str = "matching"):
        super().__init__(f"Trying to {action} from an empty {queue_name} queue")
        self.action = action
        self.queue_name = queue_name


class NotRegisteredError(MatchingError):
    def __init__(self, user_token: str):
        super().__init__("This user does not exist in the matching service.")
        self.user_token = user_token


class NotMatchedError(MatchingError):
    def __init__(self, user_token: str):
        super().__init__("This user has not been matched with anyone.")
        self.user_token = user_token


class MatchingInvariantError(MatchingError):
    """Pairing state is corrupted (asymmetric or dangling matched_user_id).

    Never caught inside the engine; the gateway reports it as a 500.
    """
