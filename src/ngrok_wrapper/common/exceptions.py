"""Custom exceptions for ngrok wrapper."""


class NgrokWrapperError(Exception):
    """Base exception for all ngrok wrapper errors."""
    pass


class ConfigurationError(NgrokWrapperError):
    """Raised when builder configuration is missing or invalid."""
    pass


class SchemeNotRequestedError(ConfigurationError):
    """Raised when asking a tunnel for a scheme that was never discovered."""
    pass


class SpawnError(NgrokWrapperError):
    """Raised when the tunnel process cannot be started."""
    pass


class BinaryNotFoundError(SpawnError):
    """Raised when the tunnel binary is not found or not executable."""
    pass


class DiscoveryError(NgrokWrapperError):
    """Raised when the public URL could not be discovered."""
    pass


class DiscoveryTimeoutError(DiscoveryError):
    """Raised when no matching tunnel was advertised before the deadline."""
    pass


class MalformedResponseError(DiscoveryError):
    """Raised when the status API returns an unexpected payload."""
    pass


class ProcessExitedError(NgrokWrapperError):
    """The managed process is gone. Returned from accessors, not raised."""

    def __init__(self, detail: str, returncode: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.returncode = returncode


class StateTransitionError(NgrokWrapperError):
    """Raised on an illegal supervisor state transition."""
    pass


class ChannelClosedError(NgrokWrapperError):
    """Raised when sending twice on a one-shot channel."""
    pass
