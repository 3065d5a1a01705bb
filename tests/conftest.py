"""
Shared fixtures.

Run with:
    python -m pytest tests/ -v
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Config  # noqa: E402
from core.credentials import CapabilityClass  # noqa: E402
from services.generation.models import GenerationModel  # noqa: E402
from services.generation.registry import ProviderRegistry  # noqa: E402
from services.jobs.store import MemoryJobStore  # noqa: E402

from helpers import FakeClock, FakeProvider, generate_rsa_key, pool_env  # noqa: E402


@pytest.fixture(scope="session")
def rsa_key():
    """One RSA key for the whole run; generation is slow."""
    return generate_rsa_key()


@pytest.fixture
def env():
    """A fully populated key environment."""
    return {
        **pool_env("GEMINI_API_KEY"),
        **pool_env("GEMINI_FLASH_IMAGE_API_KEY"),
        "MASTER_PASSWORD": "open-sesame",
        "VEO_PROJECT_ID": "test-project",
    }


@pytest.fixture
def config(env):
    return Config.from_env(env)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryJobStore(clock=clock)


@pytest.fixture
def fake_providers():
    return {
        GenerationModel.IMAGEN_3: FakeProvider(CapabilityClass.DEFAULT),
        GenerationModel.FLASH_IMAGE: FakeProvider(CapabilityClass.FLASH_IMAGE),
        GenerationModel.VEO_2: FakeProvider(CapabilityClass.VIDEO),
    }


@pytest.fixture
def registry(fake_providers):
    return ProviderRegistry(fake_providers)
