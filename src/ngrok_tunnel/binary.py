"""Preconditions for running the ngrok binary."""

import asyncio
import shutil

from .exceptions import AuthenticationError, BinaryNotFoundError
from .logging import get_logger
from .process import ProcessLauncher, launch_subprocess
from .utils import mask_sensitive_data

logger = get_logger(__name__)

INSTALL_HINT = (
    "Please install it from https://ngrok.com/download or run: brew install ngrok"
)


def find_binary(binary: str = "ngrok") -> str:
    """Find the ngrok binary in system PATH.

    Args:
        binary: Executable name or path

    Returns:
        Resolved path to the binary

    Raises:
        BinaryNotFoundError: If the binary cannot be found
    """
    path = shutil.which(binary)
    if path is None:
        raise BinaryNotFoundError(f"{binary} is not installed. {INSTALL_HINT}")
    return path


async def configure_auth_token(
    binary: str,
    token: str,
    launcher: ProcessLauncher | None = None,
    timeout: float = 30.0,
) -> None:
    """Register the auth token with ngrok (``ngrok config add-authtoken``).

    Raises:
        AuthenticationError: If the command fails, cannot run or times out
    """
    launcher = launcher or launch_subprocess
    logger.info("Configuring ngrok auth token", token=mask_sensitive_data(token))

    try:
        process = await launcher(binary, "config", "add-authtoken", token)
    except OSError as e:
        raise AuthenticationError(f"Failed to set ngrok auth token: {e}") from e

    try:
        returncode = await asyncio.wait_for(process.wait(), timeout)
    except TimeoutError as e:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        raise AuthenticationError("Timed out setting ngrok auth token") from e

    if returncode != 0:
        raise AuthenticationError(
            f"Failed to set ngrok auth token (exit code {returncode})"
        )
    logger.info("ngrok auth token configured")
