"""Error taxonomy shared by the chore client.

Validation and permission errors are raised before any network call.
The rest are produced from HTTP status codes by the REST client and keep
the server's ``detail`` text as their message.
"""
from typing import Optional


class ChoreError(Exception):
    """Base class for every error surfaced by the chore client."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ChoreError):
    """Bad input, or a business rule the server rejected with 400."""


class PermissionDeniedError(ChoreError):
    """The current user is not allowed to perform the action."""


class OwnerCannotLeaveError(PermissionDeniedError):
    """Owners delete their chores instead of leaving them."""


class NotFoundError(ChoreError):
    pass


class AlreadyMemberError(ChoreError):
    pass


class DuplicateMemberError(ChoreError):
    pass


class TransportError(ChoreError):
    """Network failure or timeout."""


class AuthError(ChoreError):
    """Credentials missing, expired or rejected."""
