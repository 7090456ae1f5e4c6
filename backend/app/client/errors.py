"""Failures of the listings API as seen by the seller client."""

from typing import Any, Optional


class ApiError(Exception):
    retryable = False
    title = "Request Failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.detail = detail


class AuthorizationDenied(ApiError):
    """401/403: the bearer token is missing, expired or for the wrong account."""

    title = "Authentication Required"

    def __init__(self, message: str = "Please log in again.", **kwargs):
        super().__init__(message, **kwargs)


class IllegalTransitionError(ApiError):
    """400 illegal_transition, e.g. deleting an active listing."""

    title = "Action Not Allowed"

    def __init__(self, message: str, required_action: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.required_action = required_action


class CredentialRejected(ApiError):
    """400 credential_invalid: wrong, used or expired OTP (not told apart)."""

    title = "Invalid OTP"


class ValidationFailed(ApiError):
    title = "Invalid Listing"


class NotFound(ApiError):
    title = "Not Found"


class Conflict(ApiError):
    title = "Conflict"


class TransportFailure(ApiError):
    """Network error or server failure. Nothing is retried automatically."""

    retryable = True
    title = "Network Error"
