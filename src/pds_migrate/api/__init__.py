"""PDS XRPC client and error taxonomy."""

from .client import APIResponse, PDSClient, PDSClientFactory
from .exceptions import (
    AuthFactorTokenRequiredError,
    MigrationStateError,
    MigrationValidationError,
    PDSAPIError,
    PDSAuthenticationError,
    PDSNotFoundError,
    PDSRateLimitError,
    PDSValidationError,
    is_auth_factor_required,
)
from .interface import RemotePDS

__all__ = [
    'APIResponse',
    'PDSClient',
    'PDSClientFactory',
    'RemotePDS',
    'AuthFactorTokenRequiredError',
    'MigrationStateError',
    'MigrationValidationError',
    'PDSAPIError',
    'PDSAuthenticationError',
    'PDSNotFoundError',
    'PDSRateLimitError',
    'PDSValidationError',
    'is_auth_factor_required',
]
