import logging

from rest_framework import permissions

from queenpoll.exceptions import ForbiddenError, NotAuthenticatedError

logger = logging.getLogger("accounts")


def is_judge(user):
    """
    The single role check gating candidate management and election resets.
    """
    if user is None or not user.is_authenticated:
        return False
    return getattr(user, "role", None) == "judge"


def ensure_judge(user):
    """
    Raise before any mutation begins if `user` may not manage the poll.
    """
    if user is None or not user.is_authenticated:
        raise NotAuthenticatedError()
    if not is_judge(user):
        logger.warning(f"Judge-only operation refused for user: {user.username}")
        raise ForbiddenError()


class IsAnonymousUser(permissions.BasePermission):
    """
    Custom permissions to only allow anonymous user to access a view
    """
    def has_permission(self, request, view):
        # The request is granted if the user is not authenticated
        return not request.user.is_authenticated


class IsJudge(permissions.BasePermission):
    """
    Allow access to judge users only
    """
    message = ForbiddenError.default_message

    def has_permission(self, request, view):
        return is_judge(request.user)
