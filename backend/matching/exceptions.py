# matching/exceptions.py
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import (
    DuplicateUserError,
    EmptyQueueError,
    MatchingError,
    MatchingInvariantError,
    NotMatchedError,
    NotRegisteredError,
)
from .views import _no_store

logger = logging.getLogger(__name__)

_STATUS_FOR = (
    (NotRegisteredError, status.HTTP_400_BAD_REQUEST),
    (NotMatchedError, status.HTTP_409_CONFLICT),
    (DuplicateUserError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (EmptyQueueError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (MatchingInvariantError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def custom_exception_handler(exc, context):
    if isinstance(exc, MatchingError):
        http_status = next(
            (code for cls, code in _STATUS_FOR if isinstance(exc, cls)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if isinstance(exc, MatchingInvariantError):
            logger.error("Internal matching error in %s: %s", context.get("view").__class__.__name__, exc)
        elif http_status >= 500:
            logger.warning("Matching error: %s", exc)
        return _no_store(Response({"error": str(exc)}, status=http_status))

    response = exception_handler(exc, context)
    if response is None:
        return response

    detail = response.data
    if isinstance(detail, dict) and set(detail) == {"detail"}:
        response.data = {"error": str(detail["detail"])}
    else:
        response.data = {"error": "invalid request", "details": detail}
    return _no_store(response)
