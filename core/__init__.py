"""
Generation Broker Core Components

Provides foundational infrastructure for the broker:
- Immutable configuration loaded once at startup
- Credential rotation pools
- Error taxonomy
- Request-scoped background tasks
"""

from .config import Config
from .credentials import CapabilityClass, CredentialPool
from .errors import BrokerError
from .tasks import BackgroundScope

__all__ = ["Config", "CapabilityClass", "CredentialPool", "BrokerError", "BackgroundScope"]
