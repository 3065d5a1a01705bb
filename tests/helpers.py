"""
Shared test doubles.
"""

import json
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from core.credentials import CapabilityClass
from services.generation.models import GenerationRequest, GenerationResult
from services.generation.providers import Provider


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProvider(Provider):
    """Provider that records calls and replays scripted outcomes."""

    name = "fake"

    def __init__(
        self,
        capability_class: CapabilityClass = CapabilityClass.DEFAULT,
        result: Optional[GenerationResult] = None,
        errors: Optional[list[Exception]] = None,
    ):
        super().__init__(http_client=None)
        self.capability_class = capability_class
        self.result = result
        self.errors = list(errors or [])
        self.calls: list[tuple[GenerationRequest, str]] = []

    async def invoke(self, request: GenerationRequest, secret: str) -> GenerationResult:
        self.calls.append((request, secret))
        if self.errors:
            raise self.errors.pop(0)
        return self.result or GenerationResult(
            translated_prompt=request.reported_prompt(),
            base64="AAAA",
            provider=self.name,
        )


def generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def service_account_document(key: rsa.RSAPrivateKey, email: str = "broker@test-project.iam.gserviceaccount.com") -> str:
    return json.dumps({
        "type": "service_account",
        "client_email": email,
        "private_key": private_key_pem(key),
        "private_key_id": "key-1",
        "token_uri": "https://oauth2.googleapis.com/token",
    })


def pool_env(prefix: str = "GEMINI_API_KEY", slots: int = 10) -> dict[str, str]:
    """Environment with secrets named after their slot, e.g. key-00 .. key-09."""
    return {f"{prefix}_{slot + 1:02d}": f"{prefix.lower()}-{slot:02d}" for slot in range(slots)}
