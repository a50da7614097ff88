"""ngrok wrapper - process-bound public tunnels for local ports."""

# High-level API
from .api import managed_tunnel, open_tunnel

# Common utilities
from .common.exceptions import (
    BinaryNotFoundError,
    ChannelClosedError,
    ConfigurationError,
    DiscoveryError,
    DiscoveryTimeoutError,
    MalformedResponseError,
    NgrokWrapperError,
    ProcessExitedError,
    SchemeNotRequestedError,
    SpawnError,
    StateTransitionError,
)
from .common.logging import get_logger, setup_logging
from .config import DiscoveryConfig, ProcessConfig, SupervisorConfig
from .discovery import DiscoveryClient
from .models import (
    ExitOutcome,
    Protocol,
    Scheme,
    SupervisorState,
    TunnelDescriptor,
    TunnelRecord,
    TunnelResult,
)
from .supervisor import ProcessSupervisor
from .tunnel import TunnelHandle
from .tunnel_builder import TunnelBuilder, builder

# Setup logging on package initialization
setup_logging(level="INFO")

# Package level logger
logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "builder",
    "open_tunnel",
    "managed_tunnel",
    # Core components
    "TunnelBuilder",
    "TunnelHandle",
    "DiscoveryClient",
    "ProcessSupervisor",
    # Models and configuration
    "Protocol",
    "Scheme",
    "SupervisorState",
    "ExitOutcome",
    "TunnelDescriptor",
    "TunnelRecord",
    "TunnelResult",
    "ProcessConfig",
    "DiscoveryConfig",
    "SupervisorConfig",
    # Exceptions
    "NgrokWrapperError",
    "ConfigurationError",
    "SchemeNotRequestedError",
    "SpawnError",
    "BinaryNotFoundError",
    "DiscoveryError",
    "DiscoveryTimeoutError",
    "MalformedResponseError",
    "ProcessExitedError",
    "StateTransitionError",
    "ChannelClosedError",
    # Utilities
    "get_logger",
    "setup_logging",
]
