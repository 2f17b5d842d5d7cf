"""ngrok tunnel manager - lifecycle of a single ngrok tunnel process."""

import structlog

from .api import managed_tunnel
from .binary import configure_auth_token, find_binary
from .config import TunnelConfig, TunnelSettings
from .discovery import EndpointDiscoverer, extract_public_url
from .exceptions import (
    AuthenticationError,
    BinaryNotFoundError,
    DiscoveryError,
    FatalProcessMessageError,
    ProcessError,
    TunnelError,
    TunnelStartCancelled,
)
from .logging import get_logger, setup_logging
from .manager import TunnelManager
from .models import TunnelStatus
from .process import (
    ProcessLauncher,
    ProcessSupervisor,
    TunnelProcess,
    build_command,
    launch_subprocess,
)
from .utils import mask_sensitive_data, validate_port

# Default package logging unless the application configured structlog first
if not structlog.is_configured():
    setup_logging(level="INFO")

logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "managed_tunnel",
    # Tunnel management
    "TunnelManager",
    "TunnelStatus",
    "TunnelConfig",
    "TunnelSettings",
    # Building blocks
    "ProcessSupervisor",
    "ProcessLauncher",
    "TunnelProcess",
    "EndpointDiscoverer",
    "build_command",
    "extract_public_url",
    "launch_subprocess",
    "find_binary",
    "configure_auth_token",
    # Exceptions
    "TunnelError",
    "BinaryNotFoundError",
    "AuthenticationError",
    "ProcessError",
    "FatalProcessMessageError",
    "DiscoveryError",
    "TunnelStartCancelled",
    # Utilities
    "get_logger",
    "setup_logging",
    "validate_port",
    "mask_sensitive_data",
]
