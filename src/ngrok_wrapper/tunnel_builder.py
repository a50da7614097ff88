"""Builder that configures, starts and discovers an ngrok tunnel."""

import httpx
from pydantic import ValidationError

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .config import DiscoveryConfig, ProcessConfig, SupervisorConfig
from .discovery import DiscoveryClient
from .models import Protocol, Scheme
from .supervisor.process import ProcessSupervisor
from .tunnel import TunnelHandle

logger = get_logger(__name__)


class TunnelBuilder:
    """Fluent builder for ``TunnelHandle``.

    Protocol and port are required; everything else has defaults.

    Example:
        >>> tunnel = builder().http().port(3030).run()
        >>> print(tunnel.http_url().unwrap())
    """

    def __init__(self) -> None:
        self._protocol: Protocol | None = None
        self._port: int | None = None
        self._process_options: dict[str, object] = {}
        self._discovery_options: dict[str, object] = {}
        self._supervisor_options: dict[str, object] = {}
        self._http_client: httpx.Client | None = None

    def http(self) -> "TunnelBuilder":
        """Use the HTTP protocol."""
        return self.protocol(Protocol.HTTP)

    def https(self) -> "TunnelBuilder":
        """Use the HTTPS protocol."""
        return self.protocol(Protocol.HTTPS)

    def protocol(self, protocol: Protocol | str) -> "TunnelBuilder":
        try:
            self._protocol = Protocol(protocol)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported protocol: {protocol!r}") from e
        return self

    def port(self, port: int) -> "TunnelBuilder":
        """Set the local port to tunnel."""
        self._port = port
        return self

    def executable(self, executable: str) -> "TunnelBuilder":
        """Set the ngrok executable. Defaults to ``ngrok`` on PATH."""
        self._process_options["executable"] = executable
        return self

    def extra_args(self, *args: str) -> "TunnelBuilder":
        self._process_options["extra_args"] = tuple(args)
        return self

    def schemes(self, *schemes: Scheme | str) -> "TunnelBuilder":
        """Require these public URL schemes instead of the protocol's own."""
        self._process_options["schemes"] = frozenset(schemes)
        return self

    def discovery_timeout(self, seconds: float) -> "TunnelBuilder":
        self._discovery_options["timeout"] = seconds
        return self

    def discovery_poll_interval(self, seconds: float) -> "TunnelBuilder":
        self._discovery_options["poll_interval"] = seconds
        return self

    def api_url(self, url: str) -> "TunnelBuilder":
        """Set the status API URL (``http://localhost:4040/api/tunnels``)."""
        self._discovery_options["api_url"] = url
        return self

    def http_client(self, client: httpx.Client) -> "TunnelBuilder":
        """Query the status API with ``client`` instead of a private one."""
        self._http_client = client
        return self

    def supervisor_poll_interval(self, seconds: float) -> "TunnelBuilder":
        self._supervisor_options["poll_interval"] = seconds
        return self

    def graceful_timeout(self, seconds: float | None) -> "TunnelBuilder":
        """Send SIGTERM and wait ``seconds`` before killing on stop."""
        self._supervisor_options["graceful_timeout"] = seconds
        return self

    def build_config(
        self,
    ) -> tuple[ProcessConfig, DiscoveryConfig, SupervisorConfig]:
        """Validate the collected settings.

        Raises:
            ConfigurationError: If protocol or port is missing or a value is invalid
        """
        if self._protocol is None:
            raise ConfigurationError(
                "Builder expected a protocol: call .http() or .https()"
            )
        if self._port is None:
            raise ConfigurationError("Builder expected a port: call .port(port)")

        try:
            process_config = ProcessConfig(
                protocol=self._protocol,
                local_port=self._port,
                **self._process_options,
            )
            discovery_config = DiscoveryConfig(**self._discovery_options)
            supervisor_config = SupervisorConfig(**self._supervisor_options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tunnel configuration: {e}") from e

        return process_config, discovery_config, supervisor_config

    def run(self) -> TunnelHandle:
        """Start ngrok, wait for its public URL and hand back the tunnel.

        Raises:
            ConfigurationError: If the configuration is incomplete or invalid
            SpawnError: If ngrok could not be started
            DiscoveryError: If no matching tunnel appeared; ngrok is stopped first
        """
        process_config, discovery_config, supervisor_config = self.build_config()

        supervisor = ProcessSupervisor.spawn(
            process_config.executable, process_config.args, supervisor_config
        )

        try:
            with DiscoveryClient(discovery_config, self._http_client) as discovery:
                record = discovery.discover(
                    process_config.local_port, process_config.schemes
                )
        except BaseException as e:
            logger.error(
                "Tunnel discovery failed, stopping process",
                pid=supervisor.pid,
                error=str(e),
            )
            supervisor.abort()
            raise

        channels = supervisor.start()
        logger.info(
            "Tunnel running",
            pid=supervisor.pid,
            local_port=process_config.local_port,
            protocol=process_config.protocol.value,
        )
        return TunnelHandle(record, process_config.protocol, channels, supervisor.pid)


def builder() -> TunnelBuilder:
    """Entry point for starting an ngrok tunnel.

    Example:
        >>> tunnel = builder().executable("ngrok").http().port(3030).run()
    """
    return TunnelBuilder()
