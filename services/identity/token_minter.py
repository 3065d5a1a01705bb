"""
Delegated Identity Token Minter

Turns a service-account document into an OAuth2 bearer token using the
JWT-bearer grant:

1. header {"alg": "RS256", "typ": "JWT"} and claims
   {iss, sub=iss, aud=token endpoint, scope, iat, exp=iat+3600}
2. base64url (unpadded) header and claims, joined with "."
3. RSASSA-PKCS1-v1_5 / SHA-256 signature over that string
4. signature appended as the third segment
5. assertion POSTed to the token endpoint, access_token returned

Tokens are not cached: every call mints and exchanges a fresh assertion.

Usage:
    minter = TokenMinter(http_client)
    credentials = ServiceAccountCredentials.from_json(document)
    token = await minter.mint(credentials)
"""

import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from core.config import CLOUD_PLATFORM_SCOPE, GOOGLE_TOKEN_URI
from core.errors import AuthError

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_HEADER = {"alg": "RS256", "typ": "JWT"}


def b64url_encode(data: bytes) -> str:
    """Base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _json_segment(obj: dict[str, Any]) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


@dataclass(frozen=True)
class ServiceAccountCredentials:
    """The parts of a service-account key file used for signing."""
    client_email: str
    private_key: str
    token_uri: str = GOOGLE_TOKEN_URI
    private_key_id: Optional[str] = None

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> "ServiceAccountCredentials":
        try:
            return cls(
                client_email=info["client_email"],
                private_key=info["private_key"],
                token_uri=info.get("token_uri") or GOOGLE_TOKEN_URI,
                private_key_id=info.get("private_key_id"),
            )
        except (KeyError, TypeError) as e:
            raise AuthError(
                f"Service account document is missing {e}",
                error_code="INVALID_SERVICE_ACCOUNT",
            ) from e

    @classmethod
    def from_json(cls, document: str) -> "ServiceAccountCredentials":
        try:
            info = json.loads(document)
        except (TypeError, ValueError) as e:
            raise AuthError(
                "Service account document is not valid JSON",
                error_code="INVALID_SERVICE_ACCOUNT",
            ) from e
        return cls.from_info(info)

    def __repr__(self) -> str:
        return f"ServiceAccountCredentials(client_email={self.client_email!r})"


class TokenMinter:
    """Builds signed assertions and exchanges them for access tokens."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        scope: str = CLOUD_PLATFORM_SCOPE,
        lifetime_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.http_client = http_client
        self.scope = scope
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def build_claims(
        self,
        credentials: ServiceAccountCredentials,
        issued_at: Optional[int] = None,
    ) -> dict[str, Any]:
        iat = int(self._clock()) if issued_at is None else issued_at
        return {
            "iss": credentials.client_email,
            "sub": credentials.client_email,
            "aud": credentials.token_uri,
            "scope": self.scope,
            "iat": iat,
            "exp": iat + self.lifetime_seconds,
        }

    def sign_assertion(
        self,
        credentials: ServiceAccountCredentials,
        claims: dict[str, Any],
        header: Optional[dict[str, Any]] = None,
    ) -> str:
        """Return the three-segment RS256 assertion for the given claims."""
        signing_input = f"{_json_segment(header or ASSERTION_HEADER)}.{_json_segment(claims)}"

        try:
            key = serialization.load_pem_private_key(
                credentials.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise AuthError(
                f"Could not parse service account private key: {type(e).__name__}",
                error_code="INVALID_PRIVATE_KEY",
            ) from e

        if not isinstance(key, rsa.RSAPrivateKey):
            raise AuthError(
                "Service account private key is not an RSA key",
                error_code="INVALID_PRIVATE_KEY",
            )

        try:
            signature = key.sign(
                signing_input.encode("ascii"), padding.PKCS1v15(), hashes.SHA256()
            )
        except (ValueError, TypeError) as e:
            raise AuthError(
                f"Assertion signing failed: {type(e).__name__}",
                error_code="SIGNING_FAILED",
            ) from e

        return f"{signing_input}.{b64url_encode(signature)}"

    async def exchange(self, credentials: ServiceAccountCredentials, assertion: str) -> str:
        """Trade a signed assertion for an access token."""
        try:
            response = await self.http_client.post(
                credentials.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise AuthError(
                f"Token exchange request failed: {type(e).__name__}",
                error_code="TOKEN_EXCHANGE_FAILED",
            ) from e

        if response.status_code != 200:
            logger.error(
                f"Token endpoint returned {response.status_code}: {response.text[:200]}"
            )
            raise AuthError(
                f"Token exchange failed with status {response.status_code}",
                error_code="TOKEN_EXCHANGE_FAILED",
            )

        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise AuthError(
                "Token endpoint response has no access_token",
                error_code="TOKEN_EXCHANGE_FAILED",
            )
        return token

    async def mint(self, credentials: ServiceAccountCredentials) -> str:
        """Build, sign and exchange a fresh assertion."""
        assertion = self.sign_assertion(credentials, self.build_claims(credentials))
        token = await self.exchange(credentials, assertion)
        logger.info(f"Minted access token for {credentials.client_email}")
        return token
