"""Data models for ngrok tunnels.

This module defines the enums shared by every component, the immutable
records handed to callers, and the wire models for ngrok's local status API.
"""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common.exceptions import ProcessExitedError, SchemeNotRequestedError
from .common.utils import parse_addr_port, url_scheme

T = TypeVar("T")


class Protocol(str, Enum):
    """Tunnel protocol, passed to ngrok as its leading positional argument."""

    HTTP = "http"
    HTTPS = "https"


class Scheme(str, Enum):
    """Scheme of an advertised public URL."""

    HTTP = "http"
    HTTPS = "https"


class SupervisorState(str, Enum):
    """Lifecycle state of a supervised tunnel process."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPED_BY_CALLER = "stopped_by_caller"
    EXITED_UNEXPECTEDLY = "exited_unexpectedly"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SupervisorState.STOPPED_BY_CALLER,
            SupervisorState.EXITED_UNEXPECTEDLY,
        )


class ExitOutcome(BaseModel):
    """Terminal result of a supervised process, delivered exactly once."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: SupervisorState = Field(description="Terminal state reached")
    returncode: int | None = Field(default=None, description="Process exit code")
    error: str | None = Field(default=None, description="Failure detail, if any")

    @field_validator("state")
    @classmethod
    def validate_terminal(cls, v: SupervisorState) -> SupervisorState:
        """Only terminal states can describe an exit."""
        if not v.is_terminal:
            raise ValueError(f"Exit outcome requires a terminal state, got {v.value}")
        return v

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_error(self) -> ProcessExitedError | None:
        """Convert a failed outcome to the error returned by accessors."""
        if self.ok:
            return None
        return ProcessExitedError(str(self.error), returncode=self.returncode)


class TunnelResult(BaseModel, Generic[T]):
    """Value-or-error result returned by tunnel accessors.

    A dead tunnel is an expected condition for long-lived monitors, so
    accessors return it here instead of raising.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: T | None = None
    error: ProcessExitedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the value, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value


class TunnelDescriptor(BaseModel):
    """One tunnel entry as advertised by the status API."""

    model_config = ConfigDict(frozen=True)

    configured_addr: str = Field(description="Local address the tunnel forwards to")
    public_url: str = Field(description="Public URL assigned by ngrok")

    @property
    def local_port(self) -> int | None:
        return parse_addr_port(self.configured_addr)

    @property
    def scheme(self) -> Scheme | None:
        scheme = url_scheme(self.public_url)
        try:
            return Scheme(scheme) if scheme else None
        except ValueError:
            return None

    def matches(self, local_port: int, scheme: Scheme) -> bool:
        """Check whether this entry serves ``local_port`` over ``scheme``."""
        return self.local_port == local_port and self.scheme == scheme


class TunnelRecord(BaseModel):
    """Resolved public URLs of one tunnel, one per requested scheme."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    local_port: int = Field(ge=1, le=65535, description="Tunneled local port")
    urls: dict[Scheme, str] = Field(min_length=1, description="Public URL by scheme")

    def url(self, scheme: Scheme | str) -> str:
        """Get the public URL for ``scheme``.

        Raises:
            SchemeNotRequestedError: If the scheme was not part of discovery
        """
        scheme = Scheme(scheme)
        try:
            return self.urls[scheme]
        except KeyError:
            raise SchemeNotRequestedError(
                f"No {scheme.value} URL was discovered for port {self.local_port}; "
                f"request it with .schemes(...)"
            ) from None

    @property
    def http(self) -> str:
        return self.url(Scheme.HTTP)

    @property
    def https(self) -> str:
        return self.url(Scheme.HTTPS)

    def __str__(self) -> str:
        """The primary public URL, HTTP first when both were discovered."""
        return next(self.urls[scheme] for scheme in Scheme if scheme in self.urls)


# ngrok status API wire models. Unknown fields are ignored.


class ApiTunnelConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    addr: str


class ApiTunnel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    public_url: str
    config: ApiTunnelConfig

    def to_descriptor(self) -> TunnelDescriptor:
        return TunnelDescriptor(
            configured_addr=self.config.addr, public_url=self.public_url
        )


class TunnelListing(BaseModel):
    """Body of ``GET /api/tunnels``."""

    model_config = ConfigDict(extra="ignore")

    tunnels: list[ApiTunnel]

    def descriptors(self) -> list[TunnelDescriptor]:
        return [tunnel.to_descriptor() for tunnel in self.tunnels]
