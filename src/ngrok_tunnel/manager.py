"""Lifecycle management for a single ngrok tunnel."""

import asyncio
from datetime import datetime
from types import TracebackType

import httpx

from .binary import configure_auth_token, find_binary
from .config import TunnelConfig
from .discovery import EndpointDiscoverer
from .exceptions import (
    DiscoveryError,
    FatalProcessMessageError,
    ProcessError,
    TunnelStartCancelled,
)
from .logging import get_logger
from .models import EMPTY_STATE, TunnelState, TunnelStatus
from .process import (
    ProcessLauncher,
    ProcessSupervisor,
    TunnelProcess,
    build_command,
    launch_subprocess,
)

logger = get_logger(__name__)


class TunnelManager:
    """Starts, observes and stops one ngrok tunnel.

    State is only ever replaced as a whole: once when a start succeeds, and
    once when the tunnel goes away (stop or process exit). A start that fails
    at any point tears its process down before raising.
    """

    def __init__(
        self,
        config: TunnelConfig | None = None,
        launcher: ProcessLauncher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the tunnel manager.

        Args:
            config: Immutable tunnel configuration
            launcher: Process launcher (defaults to asyncio subprocess)
            transport: httpx transport for the status API (used by tests)
        """
        self.config = config or TunnelConfig()
        self._launcher: ProcessLauncher = launcher or launch_subprocess
        self._state: TunnelState = EMPTY_STATE
        self._supervisor = ProcessSupervisor(
            self._launcher,
            grace_period=self.config.grace_period,
            kill_timeout=self.config.kill_timeout,
            on_exit=self._handle_exit,
        )
        self._discoverer = EndpointDiscoverer(
            self.config.status_url,
            settle_delay=self.config.settle_delay,
            attempts=self.config.discovery_attempts,
            interval=self.config.discovery_interval,
            request_timeout=self.config.request_timeout,
            transport=transport,
        )
        self._start_lock = asyncio.Lock()
        self._auth_configured = False

    async def start_tunnel(self, port: int | None = None) -> str:
        """Start the tunnel and return its public URL.

        Calling this while a tunnel is active returns the current URL
        without spawning another process.

        Args:
            port: Local port to expose (defaults to ``config.default_port``)

        Returns:
            Public HTTPS URL of the tunnel

        Raises:
            BinaryNotFoundError: If ngrok is not installed
            AuthenticationError: If the auth token cannot be configured
            ProcessError: If ngrok fails to spawn, reports a fatal error or exits
            DiscoveryError: If no public URL could be obtained
        """
        async with self._start_lock:
            state = self._state
            if state.is_live:
                logger.warning("Ngrok tunnel is already running", url=state.public_url)
                return state.public_url  # type: ignore[return-value]

            current = self._supervisor.current
            if current is not None and current.stop_requested:
                current.log.info("Waiting for previous tunnel to stop")
                await self._supervisor.terminate(current)

            if port is None:
                port = self.config.default_port
            if isinstance(port, bool) or not isinstance(port, int):
                raise TypeError(f"Port must be an integer, got {port!r}")

            binary = await self._ensure_ready()
            logger.info("Starting ngrok tunnel", port=port)
            handle = await self._supervisor.spawn(
                binary, build_command(port, self.config)
            )

            committed = False
            try:
                public_url = await self._await_public_url(handle)
                self._state = TunnelState(
                    process=handle,
                    public_url=public_url,
                    local_port=port,
                    started_at=datetime.now(),
                )
                committed = True
            finally:
                if not committed:
                    await self._supervisor.terminate(handle)

            logger.info("Ngrok tunnel started", url=public_url, port=port)
            return public_url

    async def stop_tunnel(self) -> None:
        """Stop the tunnel; also aborts a start that is still discovering."""
        handle = self._supervisor.current or self._state.process
        if handle is None:
            logger.warning("Ngrok tunnel is not running")
            return

        handle.log.info("Stopping ngrok tunnel")
        if self._state.process is handle:
            self._state = EMPTY_STATE
        await self._supervisor.terminate(handle)
        handle.log.info("Ngrok tunnel stopped")

    def get_url(self) -> str | None:
        state = self._state
        return state.public_url if state.is_live else None

    def is_active(self) -> bool:
        return self._state.is_live

    def get_status(self) -> TunnelStatus:
        """Snapshot of the tunnel built from a single state read."""
        return TunnelStatus.from_state(self._state, self.config.provider)

    async def _ensure_ready(self) -> str:
        binary = find_binary(self.config.binary)
        if self.config.auth_token and not self._auth_configured:
            await configure_auth_token(
                binary, self.config.auth_token, launcher=self._launcher
            )
            self._auth_configured = True
        return binary

    async def _await_public_url(self, handle: TunnelProcess) -> str:
        """Race discovery against fatal stderr output and process exit."""
        discovery = asyncio.ensure_future(self._discoverer.discover())
        try:
            await asyncio.wait(
                {discovery, handle.fatal, handle.exited},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not discovery.done():
                discovery.cancel()
            elif not discovery.cancelled() and discovery.exception() is not None:
                handle.log.warning(
                    "Endpoint discovery failed", error=str(discovery.exception())
                )

        if handle.fatal.done():
            raise FatalProcessMessageError(handle.fatal.result())
        if handle.stop_requested:
            raise TunnelStartCancelled("Tunnel was stopped before it became active")
        if handle.has_exited:
            raise ProcessError(
                f"ngrok exited during startup (exit code {handle.returncode})"
            )

        public_url = discovery.result()
        if public_url is None:
            raise DiscoveryError("Failed to get tunnel URL from ngrok")

        # the process may have been replaced or stopped while we were polling
        if self._supervisor.current is not handle:
            raise TunnelStartCancelled("Tunnel process is no longer tracked")
        return public_url

    def _handle_exit(self, handle: TunnelProcess, returncode: int | None) -> None:
        if self._state.process is not handle:
            return
        self._state = EMPTY_STATE
        if not handle.stop_requested:
            handle.log.warning("Ngrok tunnel went down", returncode=returncode)

    async def __aenter__(self) -> "TunnelManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await self.stop_tunnel()
        except Exception as e:
            logger.error("Error during context exit", error=str(e))
