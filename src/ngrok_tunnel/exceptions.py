"""Custom exceptions for the ngrok tunnel manager."""


class TunnelError(Exception):
    """Base exception for all tunnel manager errors."""

    pass


class BinaryNotFoundError(TunnelError):
    """Raised when the ngrok binary is not installed or not on PATH."""

    pass


class AuthenticationError(TunnelError):
    """Raised when the ngrok auth token cannot be configured."""

    pass


class ProcessError(TunnelError):
    """Raised when the tunnel process cannot be spawned or dies during startup."""

    pass


class FatalProcessMessageError(ProcessError):
    """Raised when the tunnel process reports a fatal error on stderr."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DiscoveryError(TunnelError):
    """Raised when the public URL of the tunnel cannot be discovered."""

    pass


class TunnelStartCancelled(DiscoveryError):
    """Raised by a pending start when the tunnel is stopped before it became active."""

    pass
