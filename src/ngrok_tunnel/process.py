"""Process supervision for the ngrok binary."""

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any, Protocol

from .config import TunnelConfig
from .exceptions import ProcessError
from .logging import get_logger

logger = get_logger(__name__)

# stderr fragments that mean the tunnel will never come up
FATAL_PATTERNS = ("invalid port", "ERR_NGROK_")


class ProcessLauncher(Protocol):
    """Spawns a program and returns an asyncio-subprocess-like handle."""

    async def __call__(self, program: str, *args: str) -> Any: ...


async def launch_subprocess(program: str, *args: str) -> asyncio.subprocess.Process:
    """Default launcher: stdin closed, stdout and stderr captured."""
    return await asyncio.create_subprocess_exec(
        program,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


def build_command(port: int, config: TunnelConfig) -> list[str]:
    """Build the ngrok argument list for exposing ``port``.

    Args:
        port: Local port to expose
        config: Tunnel configuration providing optional flags

    Returns:
        Arguments for the ngrok binary (without the binary itself)
    """
    args = ["http", str(port)]
    if config.domain:
        args += ["--domain", config.domain]
    elif config.subdomain:
        args += ["--subdomain", config.subdomain]
    if config.region:
        args += ["--region", config.region]
    return args


def is_fatal_message(line: str) -> bool:
    return any(pattern in line for pattern in FATAL_PATTERNS)


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Yield lines from ``stream`` until EOF.

    A line longer than the stream's buffer limit is discarded up to the point
    where the limit was hit, so one oversized write cannot stop the reader.
    """
    while True:
        try:
            yield await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if e.partial:
                yield e.partial
            return
        except asyncio.LimitOverrunError as e:
            discarded = await stream.read(e.consumed)
            logger.debug("Discarded oversized output line", size=len(discarded))


class TunnelProcess:
    """Handle for one spawned tunnel process.

    The handle's identity is the generation token used to tell a live tunnel
    apart from a stale one.
    """

    def __init__(self, process: Any, args: list[str]):
        loop = asyncio.get_running_loop()
        self.process = process
        self.args = args
        self.log = logger.bind(pid=self.pid)
        self.exited: asyncio.Future[int | None] = loop.create_future()
        self.fatal: asyncio.Future[str] = loop.create_future()
        self.stop_requested = False
        self._tasks: list[asyncio.Task[None]] = []
        self._termination: asyncio.Future[None] | None = None

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def returncode(self) -> int | None:
        if self.exited.done():
            return self.exited.result()
        return self.process.returncode

    @property
    def has_exited(self) -> bool:
        return self.exited.done() or self.process.returncode is not None

    def watch(self, *coros: Coroutine[Any, Any, None]) -> None:
        """Run background coroutines tied to this process's lifetime."""
        self._tasks.extend(asyncio.create_task(coro) for coro in coros)

    def termination(
        self, shutdown: Callable[[], Coroutine[Any, Any, None]]
    ) -> asyncio.Future[None]:
        """Return the shutdown in progress, starting ``shutdown`` if there is none."""
        self.stop_requested = True
        if self._termination is None:
            self._termination = asyncio.ensure_future(shutdown())
        return self._termination

    def send_terminate(self) -> None:
        try:
            self.process.terminate()
        except ProcessLookupError:
            self.log.debug("Process already gone")

    def send_kill(self) -> None:
        try:
            self.process.kill()
        except ProcessLookupError:
            self.log.debug("Process already gone")

    def mark_exited(self, returncode: int | None) -> None:
        if not self.exited.done():
            self.exited.set_result(returncode)

    def cancel_tasks(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()

    def __repr__(self) -> str:
        return f"TunnelProcess(pid={self.pid}, args={self.args!r})"


ExitCallback = Callable[[TunnelProcess, int | None], None]


class ProcessSupervisor:
    """Owns at most one tunnel process: spawns it, watches it and tears it down."""

    def __init__(
        self,
        launcher: ProcessLauncher | None = None,
        grace_period: float = 5.0,
        kill_timeout: float = 2.0,
        on_exit: ExitCallback | None = None,
    ):
        """Initialize the supervisor.

        Args:
            launcher: Callable spawning the process (defaults to asyncio subprocess)
            grace_period: Seconds to wait after SIGTERM before SIGKILL
            kill_timeout: Seconds to wait after SIGKILL before giving up
            on_exit: Called with the handle and return code whenever a process exits
        """
        self._launcher: ProcessLauncher = launcher or launch_subprocess
        self.grace_period = grace_period
        self.kill_timeout = kill_timeout
        self._on_exit = on_exit
        self._current: TunnelProcess | None = None

    @property
    def current(self) -> TunnelProcess | None:
        """The tracked process, if any."""
        return self._current

    def is_running(self) -> bool:
        return self._current is not None and not self._current.has_exited

    async def spawn(self, binary: str, args: list[str]) -> TunnelProcess:
        """Launch the tunnel binary and start watching it.

        Args:
            binary: Path to the ngrok executable
            args: Arguments built by ``build_command``

        Returns:
            Handle for the spawned process

        Raises:
            ProcessError: If a process is already running or exec fails
        """
        if self.is_running():
            raise ProcessError(
                f"A tunnel process is already running (pid={self._current.pid})"  # type: ignore[union-attr]
            )

        logger.info("Starting tunnel process", binary=binary, args=args)
        try:
            process = await self._launcher(binary, *args)
        except OSError as e:
            logger.error("Failed to start tunnel process", binary=binary, error=str(e))
            raise ProcessError(f"Failed to start {binary}: {e}") from e

        handle = TunnelProcess(process, args)
        self._current = handle
        handle.watch(
            self._watch_exit(handle),
            self._read_stderr(handle),
            self._drain_stdout(handle),
        )
        handle.log.info("Tunnel process started")
        return handle

    async def terminate(self, handle: TunnelProcess | None = None) -> None:
        """Stop a tunnel process, escalating to SIGKILL after the grace period.

        Never raises and never waits longer than grace period plus kill
        timeout. Concurrent calls for the same handle share one shutdown.

        Args:
            handle: Process to stop (defaults to the tracked one)
        """
        handle = handle or self._current
        if handle is None:
            logger.debug("No tunnel process running, nothing to terminate")
            return

        await asyncio.shield(handle.termination(lambda: self._terminate(handle)))

    async def _terminate(self, handle: TunnelProcess) -> None:
        try:
            if handle.has_exited:
                return

            handle.log.info("Stopping tunnel process")
            handle.send_terminate()
            try:
                await asyncio.wait_for(asyncio.shield(handle.exited), self.grace_period)
                handle.log.info("Tunnel process terminated gracefully")
                return
            except TimeoutError:
                handle.log.warning("Process did not terminate gracefully, force killing")

            handle.send_kill()
            try:
                await asyncio.wait_for(asyncio.shield(handle.exited), self.kill_timeout)
                handle.log.info("Tunnel process killed")
            except TimeoutError:
                handle.log.error("Process did not exit after kill, assuming terminated")
                handle.mark_exited(None)
                handle.cancel_tasks()
        finally:
            if self._current is handle:
                self._current = None

    async def _watch_exit(self, handle: TunnelProcess) -> None:
        returncode = await handle.process.wait()
        handle.mark_exited(returncode)
        if self._current is handle:
            self._current = None

        if handle.stop_requested:
            handle.log.debug("Tunnel process exited", returncode=returncode)
        else:
            handle.log.warning("Tunnel process exited unexpectedly", returncode=returncode)

        if self._on_exit is not None:
            self._on_exit(handle, returncode)

    async def _read_stderr(self, handle: TunnelProcess) -> None:
        stream = handle.process.stderr
        if stream is None:
            return

        async for raw in iter_lines(stream):
            line = raw.decode(errors="replace").strip()
            if not line:
                continue
            handle.log.warning("ngrok stderr", line=line)
            if not handle.fatal.done() and is_fatal_message(line):
                handle.fatal.set_result(line)

    async def _drain_stdout(self, handle: TunnelProcess) -> None:
        stream = handle.process.stdout
        if stream is None:
            return

        async for raw in iter_lines(stream):
            handle.log.debug("ngrok stdout", line=raw.decode(errors="replace").strip())
