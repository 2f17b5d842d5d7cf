"""Configuration for the ngrok tunnel manager."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils import validate_port

DEFAULT_PROVIDER = "ngrok"


class TunnelConfig(BaseModel):
    """Immutable configuration for a tunnel manager instance.

    When both ``domain`` and ``subdomain`` are set the reserved domain wins.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    binary: str = Field(default="ngrok", min_length=1, description="ngrok executable")
    auth_token: str | None = Field(default=None, description="ngrok auth token")
    region: str | None = Field(default=None, description="ngrok region code")
    subdomain: str | None = Field(default=None, description="Requested subdomain")
    domain: str | None = Field(default=None, description="Reserved domain")
    default_port: int = Field(default=3000, description="Port used when none is given")
    provider: str = Field(default=DEFAULT_PROVIDER, min_length=1)

    control_port: int = Field(default=4040, description="Local status API port")
    settle_delay: float = Field(default=2.0, ge=0.0, description="Wait before discovery")
    discovery_attempts: int = Field(default=1, ge=1, le=60)
    discovery_interval: float = Field(default=0.5, ge=0.0)
    request_timeout: float = Field(default=5.0, gt=0.0)
    grace_period: float = Field(default=5.0, gt=0.0, description="Wait before SIGKILL")
    kill_timeout: float = Field(default=2.0, gt=0.0)

    @field_validator("auth_token", "region", "subdomain", "domain", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Treat blank optional settings as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("default_port", "control_port")
    @classmethod
    def validate_ports(cls, v: int) -> int:
        return validate_port(v)

    @property
    def status_url(self) -> str:
        """URL of the ngrok local status API."""
        return f"http://localhost:{self.control_port}/api/tunnels"


class TunnelSettings(BaseSettings):
    """Tunnel settings resolved from ``NGROK_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="NGROK_", extra="ignore")

    auth_token: str | None = None
    region: str | None = "us"
    subdomain: str | None = None
    domain: str | None = None
    tunnel_port: int = 3000

    def to_config(self, **overrides: object) -> TunnelConfig:
        """Build the immutable manager configuration.

        Args:
            **overrides: Extra ``TunnelConfig`` fields (timeouts, binary path)

        Returns:
            TunnelConfig for a TunnelManager
        """
        values: dict[str, object] = {
            "auth_token": self.auth_token,
            "region": self.region,
            "subdomain": self.subdomain,
            "domain": self.domain,
            "default_port": self.tunnel_port,
        }
        values.update(overrides)
        return TunnelConfig.model_validate(values)
