"""Shared pytest fixtures for ngrok tunnel tests."""

import asyncio

import httpx
import pytest

from ngrok_tunnel.config import TunnelConfig

DEFAULT_URL = "https://abc123.example"


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process`` driven by the test."""

    def __init__(
        self,
        pid: int,
        *,
        responsive: bool = True,
        killable: bool = True,
        stderr_lines: tuple[str, ...] = (),
    ):
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.responsive = responsive
        self.killable = killable
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exit_event = asyncio.Event()
        for line in stderr_lines:
            self.stderr.feed_data(line.encode() + b"\n")

    def terminate(self):
        if self.returncode is not None:
            raise ProcessLookupError
        self.terminate_calls += 1
        if self.responsive:
            self.exit(-15)

    def kill(self):
        if self.returncode is not None:
            raise ProcessLookupError
        self.kill_calls += 1
        if self.killable:
            self.exit(-9)

    def exit(self, code: int = 0):
        """Simulate the process exiting on its own."""
        if self.returncode is None:
            self.returncode = code
            self.stdout.feed_eof()
            self.stderr.feed_eof()
            self._exit_event.set()

    async def wait(self):
        await self._exit_event.wait()
        return self.returncode


class FakeLauncher:
    """Process launcher recording every spawn instead of running ngrok."""

    def __init__(self):
        self.calls: list[tuple[str, ...]] = []
        self.processes: list[FakeProcess] = []
        self.auth_calls: list[tuple[str, ...]] = []
        self.process_options: dict = {}
        self.error: Exception | None = None
        self.auth_exit_code = 0

    async def __call__(self, program: str, *args: str) -> FakeProcess:
        if self.error is not None:
            raise self.error

        if args[:2] == ("config", "add-authtoken"):
            self.auth_calls.append((program, *args))
            process = FakeProcess(pid=99)
            process.exit(self.auth_exit_code)
            return process

        self.calls.append((program, *args))
        process = FakeProcess(pid=1000 + len(self.processes), **self.process_options)
        self.processes.append(process)
        return process


class FakeStatusAPI:
    """ngrok ``/api/tunnels`` endpoint served through ``httpx.MockTransport``."""

    def __init__(self):
        self.payload: object = {"tunnels": [{"proto": "https", "public_url": DEFAULT_URL}]}
        self.responses: list[object] = []
        self.raw_body: bytes | None = None
        self.status_code = 200
        self.refuse = False
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.refuse:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        payload = self.responses.pop(0) if self.responses else self.payload
        return httpx.Response(self.status_code, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def launcher():
    """Fake process launcher."""
    return FakeLauncher()


@pytest.fixture
def status_api():
    """Fake ngrok status API returning one HTTPS tunnel by default."""
    return FakeStatusAPI()


@pytest.fixture
def fast_config():
    """Config with timings shrunk for tests."""
    return TunnelConfig(
        settle_delay=0.01,
        discovery_interval=0.01,
        grace_period=0.1,
        kill_timeout=0.1,
    )


@pytest.fixture(autouse=True)
def ngrok_on_path(request, monkeypatch):
    """Pretend ngrok is installed (except for integration tests).

    Returns:
        list: Binaries that were looked up
    """
    lookups: list[str] = []
    if request.node.get_closest_marker("integration"):
        return lookups

    def fake_which(binary):
        lookups.append(binary)
        return f"/usr/local/bin/{binary}"

    monkeypatch.setattr("ngrok_tunnel.binary.shutil.which", fake_which)
    return lookups
