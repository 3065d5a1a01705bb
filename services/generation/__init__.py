"""
Generation Service

Provides unified access to the image and video providers through:
- Sync path: credential pool -> provider adapter -> inline result
- Async path: durable Job for a worker, polled later by the client

Provider failures are mirrored to the record sink on a best-effort basis.
"""

from .dispatcher import Dispatcher
from .models import (
    GenerationMode,
    GenerationModel,
    GenerationRequest,
    GenerationResult,
)
from .record_sink import RecordSink, SinkRecord
from .registry import ProviderRegistry, build_registry

__all__ = [
    "Dispatcher",
    "GenerationMode",
    "GenerationModel",
    "GenerationRequest",
    "GenerationResult",
    "RecordSink",
    "SinkRecord",
    "ProviderRegistry",
    "build_registry",
]
