"""Discovery of public tunnel URLs through ngrok's local status API."""

import time
from collections.abc import Iterable
from types import TracebackType
from typing import Literal

import httpx
from pydantic import ValidationError

from .common.exceptions import DiscoveryTimeoutError, MalformedResponseError
from .common.logging import get_logger
from .common.utils import validate_port
from .config import DiscoveryConfig
from .models import Scheme, TunnelDescriptor, TunnelListing, TunnelRecord

logger = get_logger(__name__)


class _NotReady(Exception):
    """The status API cannot answer yet; worth polling again."""


class DiscoveryClient:
    """Polls the status API until the tunnels for a local port show up."""

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the discovery client.

        Args:
            config: Status API location and polling settings
            http_client: Client to issue requests with. A client created here
                is closed by ``close()``; an injected one is left to its owner.
        """
        self.config = config or DiscoveryConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=self.config.request_timeout)

    def discover(
        self,
        local_port: int,
        schemes: Iterable[Scheme | str] = (Scheme.HTTP,),
        timeout: float | None = None,
    ) -> TunnelRecord:
        """Wait for a tunnel per requested scheme forwarding to ``local_port``.

        Args:
            local_port: Local port the tunnel must forward to
            schemes: Public URL schemes that must all be present
            timeout: Deadline in seconds, defaults to the configured one

        Returns:
            The matched public URLs

        Raises:
            DiscoveryTimeoutError: If no complete match appeared in time
            MalformedResponseError: If the API answered with an unexpected payload
        """
        validate_port(local_port, "Local port")
        wanted = frozenset(Scheme(s) for s in schemes)
        if not wanted:
            raise ValueError("At least one scheme must be requested")
        if timeout is None:
            timeout = self.config.timeout

        deadline = time.monotonic() + timeout
        attempts = 0
        last_reason = "no response yet"

        while True:
            attempts += 1
            try:
                descriptors = self._fetch_tunnels()
            except _NotReady as e:
                last_reason = str(e)
                logger.debug("Status API not ready", attempt=attempts, reason=last_reason)
            else:
                urls = match_tunnels(descriptors, local_port, wanted)
                if urls is not None:
                    record = TunnelRecord(local_port=local_port, urls=urls)
                    logger.info(
                        "Tunnel discovered",
                        local_port=local_port,
                        urls={s.value: u for s, u in record.urls.items()},
                        attempts=attempts,
                    )
                    return record
                last_reason = f"{len(descriptors)} tunnel(s) listed, none matching"
                logger.debug("No matching tunnel yet", attempt=attempts, reason=last_reason)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(self.config.poll_interval, remaining))

        logger.warning(
            "Tunnel discovery timed out",
            local_port=local_port,
            schemes=sorted(s.value for s in wanted),
            timeout=timeout,
            reason=last_reason,
        )
        raise DiscoveryTimeoutError(
            f"Expected a {'/'.join(sorted(s.value for s in wanted))} tunnel for port "
            f"{local_port} but found none at {self.config.api_url} within "
            f"{timeout}s ({last_reason})"
        )

    def _fetch_tunnels(self) -> list[TunnelDescriptor]:
        """Read the current tunnel listing once.

        Raises:
            MalformedResponseError: If the payload doesn't match the expected shape
        """
        try:
            response = self._client.get(self.config.api_url)
        except httpx.TransportError as e:
            raise _NotReady(f"{type(e).__name__}: {e}") from e

        if response.is_server_error:
            raise _NotReady(f"HTTP {response.status_code}")
        if not response.is_success:
            raise MalformedResponseError(
                f"Status API at {self.config.api_url} answered HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Status API returned invalid JSON: {e}") from e

        try:
            listing = TunnelListing.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"Unexpected status API payload: {e}") from e

        return listing.descriptors()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "DiscoveryClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.close()
        return False


def match_tunnels(
    descriptors: Iterable[TunnelDescriptor],
    local_port: int,
    schemes: Iterable[Scheme],
) -> dict[Scheme, str] | None:
    """Pick the first entry per scheme that forwards to ``local_port``.

    Returns:
        URL by scheme if every scheme matched, None otherwise
    """
    descriptors = list(descriptors)
    urls: dict[Scheme, str] = {}
    for scheme in schemes:
        for descriptor in descriptors:
            if descriptor.matches(local_port, scheme):
                urls[scheme] = descriptor.public_url
                break
        else:
            return None
    return urls
