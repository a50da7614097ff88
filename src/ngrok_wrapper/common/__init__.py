"""Common utilities and shared functionality."""

from .exceptions import (
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
from .logging import get_logger, setup_logging
from .utils import (
    MAX_PORT,
    MIN_PORT,
    parse_addr_port,
    url_scheme,
    validate_non_empty_string,
    validate_port,
)

__all__ = [
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
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_port",
    "validate_non_empty_string",
    "parse_addr_port",
    "url_scheme",
    "MIN_PORT",
    "MAX_PORT",
]
