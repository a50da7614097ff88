"""Shared pytest fixtures for ngrok wrapper tests."""

import os
import time
from collections.abc import Callable
from unittest.mock import Mock

import httpx
import pytest

PUBLIC_HTTP = "http://3030.ngrok.test"
PUBLIC_HTTPS = "https://3030.ngrok.test"


def tunnel_entry(public_url: str, addr: str) -> dict:
    """One entry of the status API's tunnel list."""
    return {
        "name": "command_line",
        "proto": public_url.split(":", 1)[0],
        "public_url": public_url,
        "config": {"addr": addr, "inspect": True},
    }


def tunnels_body(*entries: dict) -> dict:
    return {"tunnels": list(entries), "uri": "/api/tunnels"}


def pid_exists(pid: int) -> bool:
    """Check OS-level existence of a process we spawned and reaped."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.fixture
def fake_ngrok(tmp_path):
    """Create an executable that stands in for ngrok and just sleeps.

    Returns:
        str: Path to the executable
    """
    binary_path = tmp_path / "ngrok"
    binary_path.write_text("#!/bin/sh\nexec sleep 600\n")
    binary_path.chmod(0o755)
    return str(binary_path)


@pytest.fixture
def status_api():
    """Build an httpx client whose requests are answered by ``handler``.

    ``handler`` may be a dict (served as JSON), an ``httpx.Response``, an
    exception instance (raised), or a list of those served in order with the
    last one repeated.

    Returns:
        Callable: factory returning (client, request log)
    """
    clients: list[httpx.Client] = []

    def factory(handler) -> tuple[httpx.Client, list[httpx.Request]]:
        requests: list[httpx.Request] = []
        replies = handler if isinstance(handler, list) else [handler]

        def respond(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            reply = replies[min(len(requests), len(replies)) - 1]
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, httpx.Response):
                return reply
            return httpx.Response(200, json=reply)

        client = httpx.Client(transport=httpx.MockTransport(respond))
        clients.append(client)
        return client, requests

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""

    def wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.02)
        return predicate()

    return wait


@pytest.fixture
def mock_subprocess(monkeypatch):
    """Mock subprocess.Popen for testing process management.

    Returns:
        Mock: Mocked Popen class
    """
    mock_popen = Mock()
    monkeypatch.setattr("subprocess.Popen", mock_popen)
    return mock_popen


@pytest.fixture
def mock_process():
    """Create a mock process object for testing.

    Returns:
        Mock: Mock process with common attributes
    """
    process = Mock()
    process.pid = 12345
    process.poll.return_value = None  # Process is running
    process.terminate.return_value = None
    process.kill.return_value = None
    process.wait.return_value = -9
    return process
