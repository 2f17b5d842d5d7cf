"""Tunnel state record and status snapshot."""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .process import TunnelProcess


@dataclass(frozen=True)
class TunnelState:
    """Authoritative record of the running tunnel.

    Replaced as a whole on every transition, never updated field by field.
    """

    process: "TunnelProcess | None" = None
    public_url: str | None = None
    local_port: int | None = None
    started_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return (
            self.process is not None
            and not self.process.has_exited
            and not self.process.stop_requested
            and self.public_url is not None
        )


EMPTY_STATE = TunnelState()


class TunnelStatus(BaseModel):
    """Immutable status snapshot returned to callers."""

    model_config = ConfigDict(frozen=True)

    active: bool = Field(description="Whether a tunnel is up")
    url: str | None = Field(default=None, description="Public URL")
    port: int | None = Field(default=None, description="Local port being exposed")
    started_at: datetime | None = Field(default=None, description="When the URL was confirmed")
    provider: str = Field(description="Tunnel backend label")

    @property
    def uptime_seconds(self) -> float:
        """Seconds since the tunnel became active, 0 when inactive."""
        if not self.active or self.started_at is None:
            return 0.0
        return max(0.0, (datetime.now() - self.started_at).total_seconds())

    @classmethod
    def from_state(cls, state: TunnelState, provider: str) -> "TunnelStatus":
        if not state.is_live:
            return cls(active=False, provider=provider)
        return cls(
            active=True,
            url=state.public_url,
            port=state.local_port,
            started_at=state.started_at,
            provider=provider,
        )
