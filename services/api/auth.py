"""Master-password check for the auth action."""

import hmac

from core.errors import ConfigurationError, UnauthorizedError


def verify_password(supplied: str, expected: str) -> None:
    """
    Compare in constant time.

    Raises:
        ConfigurationError: no master password configured
        UnauthorizedError: mismatch
    """
    if not expected:
        raise ConfigurationError(
            "Server configuration error: MASTER_PASSWORD not set",
            error_code="MISSING_MASTER_PASSWORD",
        )
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid password")
