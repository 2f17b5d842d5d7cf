"""Discovery of the public URL through the ngrok local status API."""

import asyncio
from typing import Any

import httpx

from .logging import get_logger

logger = get_logger(__name__)

SECURE_PROTO = "https"


def extract_public_url(payload: Any) -> str | None:
    """Pick the public URL of the first HTTPS tunnel from a status API payload.

    Args:
        payload: Decoded JSON body, expected shape ``{"tunnels": [{"proto", "public_url"}]}``

    Returns:
        The HTTPS public URL, or None if the payload lists no usable HTTPS tunnel
    """
    if not isinstance(payload, dict):
        return None

    tunnels = payload.get("tunnels")
    if not isinstance(tunnels, list):
        return None

    for tunnel in tunnels:
        if isinstance(tunnel, dict) and tunnel.get("proto") == SECURE_PROTO:
            public_url = tunnel.get("public_url")
            if isinstance(public_url, str) and public_url:
                return public_url
            return None

    return None


class EndpointDiscoverer:
    """Polls the status API of a freshly spawned ngrok process."""

    def __init__(
        self,
        status_url: str,
        settle_delay: float = 2.0,
        attempts: int = 1,
        interval: float = 0.5,
        request_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the discoverer.

        Args:
            status_url: Full URL of ``/api/tunnels``
            settle_delay: Seconds to wait before the first poll
            attempts: Number of polls before giving up
            interval: Seconds between polls
            request_timeout: Timeout for each HTTP request
            transport: Optional httpx transport (used by tests)
        """
        self.status_url = status_url
        self.settle_delay = settle_delay
        self.attempts = attempts
        self.interval = interval
        self.request_timeout = request_timeout
        self._transport = transport

    async def discover(self) -> str | None:
        """Wait for the process to settle, then poll for the public URL.

        Returns:
            The public HTTPS URL, or None if discovery failed
        """
        await asyncio.sleep(self.settle_delay)

        async with httpx.AsyncClient(
            timeout=self.request_timeout, transport=self._transport
        ) as client:
            for attempt in range(1, self.attempts + 1):
                public_url = await self._poll(client, attempt)
                if public_url is not None:
                    logger.debug("Discovered public URL", url=public_url, attempt=attempt)
                    return public_url
                if attempt < self.attempts:
                    await asyncio.sleep(self.interval)

        logger.warning("Failed to discover tunnel URL", attempts=self.attempts)
        return None

    async def _poll(self, client: httpx.AsyncClient, attempt: int) -> str | None:
        try:
            response = await client.get(self.status_url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(
                "Failed to connect to ngrok API", error=str(e), attempt=attempt
            )
            return None
        except ValueError as e:
            logger.warning(
                "Failed to parse ngrok API response", error=str(e), attempt=attempt
            )
            return None

        public_url = extract_public_url(payload)
        if public_url is None:
            logger.warning("No HTTPS tunnel found in ngrok response", attempt=attempt)
        return public_url
