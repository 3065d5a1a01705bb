"""
Delegated identity for the video backend.

Mints OAuth2 access tokens from service-account keys (JWT-bearer grant).
"""

from .token_minter import (
    ServiceAccountCredentials,
    TokenMinter,
    b64url_decode,
    b64url_encode,
)

__all__ = [
    "ServiceAccountCredentials",
    "TokenMinter",
    "b64url_decode",
    "b64url_encode",
]
