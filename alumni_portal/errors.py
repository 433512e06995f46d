"""ALUMNI PORTAL ERRORS

Every error carries the message shown to the user. Routes map the classes to
HTTP status codes; background code paths catch ``Error`` and fail open.
"""


class Error(Exception):
    default_message = "Something went wrong"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def serialize(self):
        return {"message": self.message}


class ValidationError(Error):
    """Local, field-level validation failure. Never reaches the network."""

    default_message = "Please correct the highlighted fields"

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    @property
    def serialize(self):
        return {"message": self.message, "errors": self.errors}


class AuthError(Error):
    default_message = "Authentication failed"


class InvalidCredentials(AuthError):
    default_message = "Invalid email or password. Please check your credentials."


class EmailNotConfirmed(AuthError):
    default_message = (
        "Please check your email and confirm your account before signing in."
    )


class NotAuthenticated(AuthError):
    default_message = "Not authenticated"


class SessionExpired(AuthError):
    default_message = "Session expired. Please refresh the page and try again."


class PermissionDenied(Error):
    default_message = "Permission denied. Please refresh the page and try again."


class NotFound(Error):
    default_message = "Not found"


class ProfileNotFound(NotFound):
    default_message = "Profile not found"


class DeletionRequestNotFound(NotFound):
    default_message = "Deletion request not found"


class Conflict(Error):
    default_message = "The record was changed by someone else"


class DeletionRequestConflict(Conflict):
    default_message = "You already have a pending deletion request."


class BackendUnavailable(Error):
    """Network or transient failure talking to the hosted backend."""

    default_message = "Network error. Please check your connection and try again."
