"""
Credential rotation pools.

Each capability class owns a pool of interchangeable secrets indexed 0..9.
Requests carry a rotation index that spreads traffic across provider quotas:

    pool = CredentialPool.from_env()
    api_key = pool.get_key(CapabilityClass.DEFAULT, rotation_index=13)  # slot 3

Environment variables use a 1-based, zero-padded suffix, so slot 0 is read
from GEMINI_API_KEY_01 and slot 9 from GEMINI_API_KEY_10.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

POOL_SIZE = 10


class CapabilityClass(str, Enum):
    """Credential classes, one per provider family."""
    DEFAULT = "default"           # translate + Imagen predict
    FLASH_IMAGE = "flash-image"   # Gemini Flash Image generate/edit
    VIDEO = "video"               # Veo via service-account identity


# Environment variable prefix per class
ENV_PREFIXES = {
    CapabilityClass.DEFAULT: "GEMINI_API_KEY",
    CapabilityClass.FLASH_IMAGE: "GEMINI_FLASH_IMAGE_API_KEY",
    CapabilityClass.VIDEO: "VEO_SERVICE_ACCOUNT",
}


def env_var_name(capability_class: CapabilityClass, slot: int) -> str:
    """Environment variable holding the secret for a 0-based slot."""
    return f"{ENV_PREFIXES[capability_class]}_{slot + 1:02d}"


@dataclass(frozen=True)
class CredentialPoolEntry:
    """One secret in a rotation pool."""
    capability_class: CapabilityClass
    rotation_index: int
    secret: str

    def __repr__(self) -> str:
        return (
            f"CredentialPoolEntry(capability_class={self.capability_class.value!r}, "
            f"rotation_index={self.rotation_index}, secret='***')"
        )


class CredentialPool:
    """Immutable lookup of (capability class, slot) -> secret."""

    def __init__(
        self,
        entries: Iterable[CredentialPoolEntry] = (),
        pool_size: int = POOL_SIZE,
    ):
        self.pool_size = pool_size
        secrets = {}
        for entry in entries:
            if not 0 <= entry.rotation_index < pool_size:
                raise ConfigurationError(
                    f"Rotation index {entry.rotation_index} outside pool of {pool_size}"
                )
            secrets[(entry.capability_class, entry.rotation_index)] = entry.secret
        self._secrets = MappingProxyType(secrets)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CredentialPool":
        """Load every configured pool slot from the environment."""
        env = os.environ if environ is None else environ
        entries = []

        for capability_class in CapabilityClass:
            # A bare VEO_SERVICE_ACCOUNT fills any slot not set explicitly
            fallback = env.get(ENV_PREFIXES[capability_class], "")
            for slot in range(POOL_SIZE):
                secret = env.get(env_var_name(capability_class, slot), "") or fallback
                if secret:
                    entries.append(CredentialPoolEntry(capability_class, slot, secret))

        return cls(entries)

    def get_key(self, capability_class: CapabilityClass, rotation_index: int) -> str:
        """
        Return the secret for a rotation index.

        Raises:
            ConfigurationError: if the computed slot has no secret configured
        """
        slot = rotation_index % self.pool_size
        secret = self._secrets.get((capability_class, slot))
        if not secret:
            env_var = env_var_name(capability_class, slot)
            logger.error(f"Missing credential: {env_var}")
            raise ConfigurationError(
                f"Server configuration error: Missing API Key ({env_var})",
                error_code="MISSING_CREDENTIAL",
            )
        return secret

    def configured_slots(self, capability_class: CapabilityClass) -> list[int]:
        """Slots that have a secret for a class."""
        return sorted(slot for (cls_, slot) in self._secrets if cls_ == capability_class)

    def __len__(self) -> int:
        return len(self._secrets)
