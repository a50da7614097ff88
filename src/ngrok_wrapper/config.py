"""Configuration models for the tunnel process, discovery and supervision."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common.utils import validate_non_empty_string
from .models import Protocol, Scheme

DEFAULT_EXECUTABLE = "ngrok"
DEFAULT_API_URL = "http://localhost:4040/api/tunnels"


class ProcessConfig(BaseModel):
    """Immutable description of the tunnel process to spawn."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    protocol: Protocol = Field(description="Tunnel protocol (http or https)")
    local_port: int = Field(ge=1, le=65535, description="Local port to expose")
    executable: str = Field(
        default=DEFAULT_EXECUTABLE, description="ngrok executable name or path"
    )
    extra_args: tuple[str, ...] = Field(
        default=(), description="Arguments appended after the port"
    )
    schemes: frozenset[Scheme] = Field(
        default_factory=frozenset,
        description="Public URL schemes to discover (defaults to the protocol's)",
    )

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        return validate_non_empty_string(v, "Executable")

    @model_validator(mode="before")
    @classmethod
    def default_schemes(cls, data: Any) -> Any:
        """Request only the protocol's own scheme unless told otherwise."""
        if isinstance(data, dict) and not data.get("schemes") and data.get("protocol"):
            data = {**data, "schemes": frozenset({Scheme(Protocol(data["protocol"]).value)})}
        return data

    @property
    def args(self) -> list[str]:
        """Command-line arguments following the executable."""
        return [self.protocol.value, str(self.local_port), *self.extra_args]


class DiscoveryConfig(BaseModel):
    """How to poll ngrok's local status API."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    api_url: str = Field(default=DEFAULT_API_URL, min_length=1, description="Status API URL")
    poll_interval: float = Field(default=0.3, gt=0, le=10.0, description="Seconds between polls")
    timeout: float = Field(default=5.0, gt=0, le=300.0, description="Discovery deadline in seconds")
    request_timeout: float = Field(
        default=2.0, gt=0, le=60.0, description="Per-request HTTP timeout in seconds"
    )


class SupervisorConfig(BaseModel):
    """How the supervisor watches and stops the process."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    poll_interval: float = Field(
        default=0.1, gt=0, le=10.0, description="Seconds between liveness checks"
    )
    graceful_timeout: float | None = Field(
        default=None,
        gt=0,
        le=30.0,
        description="Seconds to wait after SIGTERM before SIGKILL (None kills at once)",
    )
