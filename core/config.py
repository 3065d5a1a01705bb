"""
Configuration management for the generation broker.

Centralizes all configuration including:
- Credential rotation pools
- Provider endpoints
- Video (Vertex AI) target and polling budget
- Durable store and worker settings

The Config object is built once at startup with Config.from_env() and passed
to every component. It is immutable.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .credentials import CapabilityClass, CredentialPool

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


@dataclass(frozen=True)
class EndpointConfig:
    """Provider endpoints for API-key based calls."""

    imagen_predict_url: str = f"{GEMINI_API_BASE}/imagen-3.0-generate-002:predict"
    translate_url: str = f"{GEMINI_API_BASE}/gemini-2.5-flash-preview-09-2025:generateContent"
    flash_image_url: str = f"{GEMINI_API_BASE}/gemini-2.5-flash-image-preview:generateContent"

    # HTTP timeout for a single provider call
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class VideoConfig:
    """Vertex AI video generation target."""

    project_id: str = ""
    location: str = "us-central1"
    model: str = "veo-2.0-generate-001"
    storage_uri: str = ""  # gs:// prefix for generated videos

    token_uri: str = GOOGLE_TOKEN_URI
    token_scope: str = CLOUD_PLATFORM_SCOPE
    token_lifetime_seconds: int = 3600

    # Kept well below the platform's synchronous execution ceiling
    poll_max_wait_seconds: float = 45.0
    poll_interval_seconds: float = 3.0

    @property
    def model_url(self) -> str:
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project_id}"
            f"/locations/{self.location}/publishers/google/models/{self.model}"
        )


@dataclass(frozen=True)
class StoreConfig:
    """Durable job/status store configuration."""

    database_url: str = ""  # empty -> in-memory store
    table: str = "generation_kv"
    pool_min_size: int = 1
    pool_max_size: int = 5
    job_ttl_seconds: int = 3600
    status_ttl_seconds: int = 3600


@dataclass(frozen=True)
class WorkerConfig:
    """Reference job worker configuration."""

    max_retries: int = 3
    poll_interval_seconds: float = 2.0
    batch_size: int = 4

    # How often the worker sweeps expired store entries
    purge_interval_seconds: float = 60.0

    # Workers are not bound by the synchronous request ceiling
    operation_max_wait_seconds: float = 600.0


@dataclass(frozen=True)
class Config:
    """Main configuration class."""

    credentials: CredentialPool = field(default_factory=CredentialPool)
    master_password: str = ""
    record_sink_url: str = ""

    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ

        return cls(
            credentials=CredentialPool.from_env(env),
            master_password=env.get("MASTER_PASSWORD", ""),
            record_sink_url=env.get("RECORD_SINK_URL", ""),
            endpoints=EndpointConfig(
                timeout_seconds=float(env.get("PROVIDER_TIMEOUT_SECONDS", "60")),
            ),
            video=VideoConfig(
                project_id=env.get("VEO_PROJECT_ID", ""),
                location=env.get("VEO_LOCATION", "us-central1"),
                model=env.get("VEO_MODEL", "veo-2.0-generate-001"),
                storage_uri=env.get("VEO_STORAGE_URI", ""),
                poll_max_wait_seconds=float(env.get("VEO_POLL_MAX_WAIT", "45")),
                poll_interval_seconds=float(env.get("VEO_POLL_INTERVAL", "3")),
            ),
            store=StoreConfig(
                database_url=env.get("DATABASE_URL", ""),
                job_ttl_seconds=int(env.get("JOB_TTL_SECONDS", "3600")),
                status_ttl_seconds=int(env.get("STATUS_TTL_SECONDS", "3600")),
            ),
            worker=WorkerConfig(
                max_retries=int(env.get("WORKER_MAX_RETRIES", "3")),
                poll_interval_seconds=float(env.get("WORKER_POLL_INTERVAL", "2.0")),
                operation_max_wait_seconds=float(env.get("WORKER_OPERATION_MAX_WAIT", "600")),
                purge_interval_seconds=float(env.get("WORKER_PURGE_INTERVAL", "60")),
            ),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.credentials.configured_slots(CapabilityClass.DEFAULT):
            issues.append("No GEMINI_API_KEY_xx configured (needed for translate and Imagen)")

        if not self.credentials.configured_slots(CapabilityClass.FLASH_IMAGE):
            issues.append("No GEMINI_FLASH_IMAGE_API_KEY_xx configured (needed for edits)")

        if self.credentials.configured_slots(CapabilityClass.VIDEO) and not self.video.project_id:
            issues.append("VEO_SERVICE_ACCOUNT set but VEO_PROJECT_ID not configured")

        if not self.master_password:
            issues.append("MASTER_PASSWORD not configured (auth action will fail)")

        if not self.store.database_url:
            issues.append("DATABASE_URL not configured (jobs kept in process memory)")

        return issues
