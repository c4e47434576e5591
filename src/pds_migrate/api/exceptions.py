"""PDS API exceptions and error classification."""

import re
from typing import Any, Optional

AUTH_FACTOR_TOKEN_REQUIRED = 'AuthFactorTokenRequired'

# Some servers only report the challenge in the human-readable message.
_AUTH_FACTOR_MESSAGE_PATTERN = re.compile(r'auth.*factor.*required', re.I | re.S)


class PDSAPIError(Exception):
    """Base exception for PDS XRPC errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        response_data: Optional[dict] = None,
    ):
        """Initialize PDS API error.

        Args:
            message: Error message
            status_code: HTTP status code
            error: XRPC error code (the ``error`` field of the response body)
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.response_data = response_data


class PDSAuthenticationError(PDSAPIError):
    """Authentication error with a PDS."""

    pass


class AuthFactorTokenRequiredError(PDSAuthenticationError):
    """The source PDS asked for an emailed sign-in code.

    Recoverable: call ``migrate`` again on the same orchestrator with the
    code set on the request and ``use_auth_factor=True``.
    """

    def __init__(self, message: str = 'Two-factor code required', **kwargs):
        kwargs.setdefault('error', AUTH_FACTOR_TOKEN_REQUIRED)
        super().__init__(message, **kwargs)


class PDSRateLimitError(PDSAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class PDSNotFoundError(PDSAPIError):
    """Resource not found error."""

    pass


class PDSValidationError(PDSAPIError):
    """The PDS rejected the request body or parameters."""

    pass


class MigrationValidationError(ValueError):
    """Migration input is missing or malformed."""

    pass


class MigrationStateError(RuntimeError):
    """An orchestrator entry point was called out of order."""

    pass


def is_auth_factor_required(error: Any) -> bool:
    """Check whether an error is a "second factor required" challenge.

    The structured XRPC error code is checked first. Servers that omit it
    are matched on the message text, case-insensitively and regardless of
    spacing ("AuthFactorTokenRequired", "Auth Factor Token Required").
    The words must appear in that order, as web clients match them, so
    "required: auth factor" is not treated as a challenge.

    Args:
        error: Any exception raised by a login call

    Returns:
        True if the error asks for a second factor
    """
    if error is None:
        return False

    code = getattr(error, 'error', None)
    if not code:
        response_data = getattr(error, 'response_data', None)
        if isinstance(response_data, dict):
            code = response_data.get('error')
    if code == AUTH_FACTOR_TOKEN_REQUIRED:
        return True

    message = getattr(error, 'message', None)
    if not isinstance(message, str):
        message = str(error)
    return bool(_AUTH_FACTOR_MESSAGE_PATTERN.search(message))
