import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PollError(Exception):
    """Base exception for poll operations"""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be processed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(PollError):
    """Raised when a referenced entity does not exist"""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class CandidateNotFoundError(NotFoundError):
    default_message = "Candidate not found."


class UserNotFoundError(NotFoundError):
    default_message = "User not found."


class AlreadyVotedError(PollError):
    """Raised when a voter tries to vote twice"""

    default_message = "You have already voted."


class ForbiddenError(PollError):
    """Raised when the caller's role does not allow the operation"""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden: judges only."


class NotAuthenticatedError(PollError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated."


class ValidationError(PollError):
    """Raised when input to a mutating operation is malformed"""

    default_message = "Invalid data."

    def __init__(self, errors=None, message=None):
        self.errors = errors or {}
        super().__init__(message)


def poll_exception_handler(exc, context):
    """
    Render PollError subclasses as the API's error envelope.
    Anything else is handed to DRF's default handler.
    """
    if not isinstance(exc, PollError):
        return exception_handler(exc, context)

    body = {"status": "error", "message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors

    view = context.get("view")
    logger.info(
        "%s rejected in %s: %s",
        type(exc).__name__,
        type(view).__name__ if view else "unknown view",
        exc.message,
    )
    return Response(body, status=exc.status_code)
