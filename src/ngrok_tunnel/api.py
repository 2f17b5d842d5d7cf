"""High-level API for the ngrok tunnel manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from .config import TunnelConfig
from .logging import get_logger
from .manager import TunnelManager
from .process import ProcessLauncher

logger = get_logger(__name__)


@asynccontextmanager
async def managed_tunnel(
    port: int | None = None,
    config: TunnelConfig | None = None,
    *,
    launcher: ProcessLauncher | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[str]:
    """Expose a local port through ngrok for the duration of the block.

    The tunnel is stopped when the block exits, even if an exception occurs.

    Args:
        port: Local port to expose (defaults to ``config.default_port``)
        config: Tunnel configuration
        launcher: Process launcher override
        transport: httpx transport override for the status API

    Yields:
        str: The public URL of the tunnel

    Example:
        >>> async with managed_tunnel(3000) as url:
        ...     print(f"Your app is live at: {url}")
    """
    async with TunnelManager(config, launcher=launcher, transport=transport) as manager:
        url = await manager.start_tunnel(port)
        logger.info("Managed tunnel created", url=url, port=manager.get_status().port)
        try:
            yield url
        finally:
            logger.info("Managed tunnel cleaned up", url=url)
