"""Tests for DiscoveryClient against a mocked status API."""

import time

import httpx
import pytest

from conftest import PUBLIC_HTTP, PUBLIC_HTTPS, tunnel_entry, tunnels_body
from ngrok_wrapper.common.exceptions import DiscoveryTimeoutError, MalformedResponseError
from ngrok_wrapper.config import DiscoveryConfig
from ngrok_wrapper.discovery import DiscoveryClient, match_tunnels
from ngrok_wrapper.models import Scheme, TunnelDescriptor

FAST = DiscoveryConfig(poll_interval=0.01, timeout=0.5)


class TestDiscoveryMatching:
    """Selecting the right tunnel from a listing"""

    def test_picks_entry_for_requested_port(self, status_api):
        """Port 3030 must resolve to its own entry, ignoring 9999"""
        client, _ = status_api(
            tunnels_body(
                tunnel_entry("http://other.ngrok.test", "http://localhost:9999"),
                tunnel_entry(PUBLIC_HTTP, "http://localhost:3030"),
            )
        )

        record = DiscoveryClient(FAST, client).discover(3030, [Scheme.HTTP])

        assert record.local_port == 3030
        assert record.http == PUBLIC_HTTP

    @pytest.mark.parametrize(
        "corrupt",
        [
            tunnel_entry("http://bad.ngrok.test", "²"),
            tunnel_entry("http://[::1", "localhost:3030"),
        ],
        ids=["superscript-addr", "broken-public-url"],
    )
    def test_corrupt_entry_is_skipped(self, status_api, corrupt):
        """An unparseable entry is a non-match, not a failure"""
        client, _ = status_api(
            tunnels_body(
                corrupt,
                tunnel_entry("http://ok.ngrok.test", "localhost:3030"),
            )
        )

        record = DiscoveryClient(FAST, client).discover(3030, [Scheme.HTTP])

        assert record.http == "http://ok.ngrok.test"

    def test_http_request_not_satisfied_by_https_entry(self, status_api):
        """An HTTPS-only listing must not satisfy an HTTP request"""
        client, _ = status_api(
            tunnels_body(tunnel_entry(PUBLIC_HTTPS, "http://localhost:3030"))
        )
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.01, timeout=0.1), client)

        with pytest.raises(DiscoveryTimeoutError):
            discovery.discover(3030, [Scheme.HTTP])

    def test_https_request_not_satisfied_by_http_entry(self, status_api):
        """An HTTP-only listing must not satisfy an HTTPS request"""
        client, _ = status_api(
            tunnels_body(tunnel_entry(PUBLIC_HTTP, "http://localhost:3030"))
        )
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.01, timeout=0.1), client)

        with pytest.raises(DiscoveryTimeoutError):
            discovery.discover(3030, [Scheme.HTTPS])

    def test_both_schemes_resolved(self, status_api):
        """Requesting both schemes returns both URLs"""
        client, _ = status_api(
            tunnels_body(
                tunnel_entry(PUBLIC_HTTPS, "http://localhost:3030"),
                tunnel_entry(PUBLIC_HTTP, "http://localhost:3030"),
            )
        )

        record = DiscoveryClient(FAST, client).discover(
            3030, [Scheme.HTTP, Scheme.HTTPS]
        )

        assert record.http == PUBLIC_HTTP
        assert record.https == PUBLIC_HTTPS

    def test_both_schemes_wait_for_second_entry(self, status_api):
        """A partial match keeps polling until every scheme is listed"""
        partial = tunnels_body(tunnel_entry(PUBLIC_HTTPS, "localhost:3030"))
        full = tunnels_body(
            tunnel_entry(PUBLIC_HTTPS, "localhost:3030"),
            tunnel_entry(PUBLIC_HTTP, "localhost:3030"),
        )
        client, requests = status_api([partial, partial, full])

        record = DiscoveryClient(FAST, client).discover(3030, ["http", "https"])

        assert len(requests) == 3
        assert record.urls == {Scheme.HTTP: PUBLIC_HTTP, Scheme.HTTPS: PUBLIC_HTTPS}

    def test_match_tunnels_accepts_bare_port_addr(self):
        """Configured addresses may be a bare port"""
        descriptors = [TunnelDescriptor(configured_addr="3030", public_url=PUBLIC_HTTP)]

        assert match_tunnels(descriptors, 3030, [Scheme.HTTP]) == {Scheme.HTTP: PUBLIC_HTTP}
        assert match_tunnels(descriptors, 3031, [Scheme.HTTP]) is None

    def test_first_matching_entry_wins(self):
        """Duplicate entries resolve to the first one listed"""
        descriptors = [
            TunnelDescriptor(configured_addr="3030", public_url="http://first.test"),
            TunnelDescriptor(configured_addr="3030", public_url="http://second.test"),
        ]

        assert match_tunnels(descriptors, 3030, [Scheme.HTTP]) == {
            Scheme.HTTP: "http://first.test"
        }


class TestDiscoveryRetries:
    """Retry and timeout behaviour"""

    def test_connection_errors_are_retried(self, status_api):
        """A status API that isn't listening yet is polled again"""
        refused = httpx.ConnectError("Connection refused")
        client, requests = status_api(
            [refused, refused, tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:3030"))]
        )

        record = DiscoveryClient(FAST, client).discover(3030)

        assert record.http == PUBLIC_HTTP
        assert len(requests) == 3

    def test_server_errors_are_retried(self, status_api):
        """HTTP 5xx counts as not ready yet"""
        client, requests = status_api(
            [
                httpx.Response(502, text="Bad Gateway"),
                tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:3030")),
            ]
        )

        record = DiscoveryClient(FAST, client).discover(3030)

        assert record.http == PUBLIC_HTTP
        assert len(requests) == 2

    def test_empty_listing_is_retried(self, status_api):
        """No tunnels yet means keep polling"""
        client, requests = status_api(
            [tunnels_body(), tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:3030"))]
        )

        DiscoveryClient(FAST, client).discover(3030)

        assert len(requests) == 2

    def test_times_out_without_match(self, status_api):
        """Discovery gives up after the deadline"""
        client, requests = status_api(
            tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:9999"))
        )
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.05, timeout=0.3), client)

        started = time.monotonic()
        with pytest.raises(DiscoveryTimeoutError, match="port 3030"):
            discovery.discover(3030)
        elapsed = time.monotonic() - started

        assert 0.3 <= elapsed < 2.0
        assert len(requests) > 1

    def test_times_out_when_api_never_answers(self, status_api):
        """Connection failures until the deadline end in a timeout"""
        client, _ = status_api(httpx.ConnectError("Connection refused"))
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.02, timeout=0.1), client)

        with pytest.raises(DiscoveryTimeoutError, match="ConnectError"):
            discovery.discover(3030)

    def test_explicit_timeout_overrides_config(self, status_api):
        """A per-call timeout takes precedence"""
        client, _ = status_api(tunnels_body())
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.02, timeout=60.0), client)

        started = time.monotonic()
        with pytest.raises(DiscoveryTimeoutError):
            discovery.discover(3030, timeout=0.1)

        assert time.monotonic() - started < 5.0

    def test_requests_configured_api_url(self, status_api):
        """Requests go to the configured status API URL"""
        client, requests = status_api(
            tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:3030"))
        )
        config = DiscoveryConfig(api_url="http://127.0.0.1:4041/api/tunnels", timeout=0.5)

        DiscoveryClient(config, client).discover(3030)

        assert str(requests[0].url) == "http://127.0.0.1:4041/api/tunnels"
        assert requests[0].method == "GET"


class TestMalformedResponses:
    """Malformed payloads surface immediately"""

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"tunnels": "not-a-list"},
            {"tunnels": [{"config": {"addr": "localhost:3030"}}]},
            {"tunnels": [{"public_url": PUBLIC_HTTP}]},
            {"tunnels": [{"public_url": PUBLIC_HTTP, "config": {}}]},
            [],
        ],
    )
    def test_schema_violations_raise(self, status_api, payload):
        """Missing fields or wrong types are not retried"""
        client, requests = status_api([payload])
        discovery = DiscoveryClient(DiscoveryConfig(poll_interval=0.01, timeout=5.0), client)

        with pytest.raises(MalformedResponseError):
            discovery.discover(3030)

        assert len(requests) == 1

    def test_invalid_json_raises(self, status_api):
        """A non-JSON body is malformed"""
        client, requests = status_api(httpx.Response(200, text="<html>ngrok</html>"))

        with pytest.raises(MalformedResponseError, match="invalid JSON"):
            DiscoveryClient(FAST, client).discover(3030)

        assert len(requests) == 1

    def test_client_error_status_raises(self, status_api):
        """HTTP 404 means the wrong endpoint, which won't fix itself"""
        client, requests = status_api(httpx.Response(404, text="not found"))

        with pytest.raises(MalformedResponseError, match="404"):
            DiscoveryClient(FAST, client).discover(3030)

        assert len(requests) == 1

    def test_unknown_fields_are_ignored(self, status_api):
        """Extra fields in the listing don't matter"""
        entry = tunnel_entry(PUBLIC_HTTP, "localhost:3030")
        entry["metrics"] = {"conns": {"count": 0}}
        client, _ = status_api(tunnels_body(entry))

        assert DiscoveryClient(FAST, client).discover(3030).http == PUBLIC_HTTP


class TestDiscoveryClientLifecycle:
    """Arguments and client ownership"""

    def test_rejects_invalid_port(self, status_api):
        client, requests = status_api(tunnels_body())

        with pytest.raises(ValueError, match="Local port"):
            DiscoveryClient(FAST, client).discover(0)

        assert requests == []

    def test_rejects_empty_scheme_list(self, status_api):
        client, _ = status_api(tunnels_body())

        with pytest.raises(ValueError, match="scheme"):
            DiscoveryClient(FAST, client).discover(3030, [])

    def test_injected_client_is_not_closed(self, status_api):
        client, _ = status_api(tunnels_body())

        with DiscoveryClient(FAST, client):
            pass

        assert not client.is_closed

    def test_own_client_is_closed(self):
        discovery = DiscoveryClient(FAST)
        discovery.close()

        assert discovery._client.is_closed
