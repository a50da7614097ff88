"""Tests for the high-level API."""

import pytest

from conftest import PUBLIC_HTTP, pid_exists, tunnel_entry, tunnels_body
from ngrok_wrapper import api
from ngrok_wrapper.tunnel_builder import TunnelBuilder
from ngrok_wrapper.models import SupervisorState


@pytest.fixture
def patched_builder(monkeypatch, status_api):
    """Route the high-level API through a mocked status API."""
    client, requests = status_api(tunnels_body(tunnel_entry(PUBLIC_HTTP, "localhost:3030")))
    original_init = TunnelBuilder.__init__

    def init(self):
        original_init(self)
        self.http_client(client).discovery_poll_interval(0.01).supervisor_poll_interval(0.02)

    monkeypatch.setattr(TunnelBuilder, "__init__", init)
    return requests


class TestOpenTunnel:
    def test_open_tunnel(self, fake_ngrok, patched_builder):
        tunnel = api.open_tunnel(3030, executable=fake_ngrok, timeout=1.0)
        try:
            assert tunnel.public_url == PUBLIC_HTTP
            assert tunnel.status().ok
        finally:
            tunnel.close()

        assert not pid_exists(tunnel.pid)
        assert len(patched_builder) == 1


class TestManagedTunnel:
    def test_managed_tunnel_closes(self, fake_ngrok, patched_builder):
        with api.managed_tunnel(3030, "http", executable=fake_ngrok) as tunnel:
            assert tunnel.http_url().unwrap() == PUBLIC_HTTP
            pid = tunnel.pid

        assert not pid_exists(pid)
        assert tunnel.state is SupervisorState.STOPPED_BY_CALLER

    def test_managed_tunnel_closes_on_error(self, fake_ngrok, patched_builder):
        with pytest.raises(ValueError, match="caller"):
            with api.managed_tunnel(3030, executable=fake_ngrok) as tunnel:
                pid = tunnel.pid
                raise ValueError("caller failure")

        assert not pid_exists(pid)
