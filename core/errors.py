"""
Error taxonomy for the generation broker.

Every error raised inside the broker derives from BrokerError and carries:
- an HTTP status code used when the API maps it to a response
- an error_code string for logs and clients
- the provider involved, when there is one

The API layer converts these into JSON exactly once (see services/api/results.py).
"""

from typing import Optional


class BrokerError(Exception):
    """Base class for all broker errors."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.provider = provider
        super().__init__(message)


class ConfigurationError(BrokerError):
    """Missing secret or binding. Fatal, never retried."""

    status_code = 500
    default_code = "CONFIGURATION_ERROR"


class ValidationError(BrokerError):
    """Malformed or unknown request field. Client fault."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(BrokerError):
    """Master password mismatch."""

    status_code = 401
    default_code = "UNAUTHORIZED"


class ProviderError(BrokerError):
    """Non-success or malformed provider response."""

    status_code = 502
    default_code = "PROVIDER_ERROR"

    # Workers may retry these; subclasses that are never transient override it
    retryable: bool = True


class SafetyBlockError(ProviderError):
    """Provider refused the content for safety reasons."""

    status_code = 422
    default_code = "SAFETY_BLOCK"
    retryable = False


class ProviderOperationError(ProviderError):
    """A long-running operation finished with an error."""

    default_code = "OPERATION_FAILED"
    retryable = False


class AuthError(BrokerError):
    """Delegated-identity assertion could not be built, signed or exchanged."""

    status_code = 502
    default_code = "AUTH_ERROR"


class OperationTimeoutError(BrokerError, TimeoutError):
    """Long-running operation did not finish within the synchronous budget."""

    status_code = 504
    default_code = "OPERATION_TIMEOUT"


class StoreError(BrokerError):
    """Durable store unavailable."""

    status_code = 503
    default_code = "STORE_UNAVAILABLE"
