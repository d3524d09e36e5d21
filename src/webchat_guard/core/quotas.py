"""Per-channel inbound quotas.

Base thresholds live in code and are scaled by the organization's tier. They
are looked up, never computed from traffic.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Final, Literal

Channel = Literal["webchat", "native_guest", "telegram"]
CHANNELS: Final[tuple[Channel, ...]] = ("webchat", "native_guest", "telegram")
DEFAULT_CHANNEL: Final[Channel] = "webchat"

FREE_TIER_MULTIPLIER: Final[int] = 1
PAID_TIER_MULTIPLIER: Final[int] = 2


@dataclass(frozen=True)
class ChannelQuota:
    """Thresholds applied to one channel."""

    soft_ip_per_minute: int
    hard_ip_per_minute: int
    burst_per_ten_seconds: int
    soft_device_per_minute: int
    soft_session_per_minute: int
    channel_per_day: int

    def scaled(self, multiplier: int) -> ChannelQuota:
        """Return a copy with every threshold multiplied by `multiplier`."""
        return ChannelQuota(**{name: value * multiplier for name, value in asdict(self).items()})

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


# native_guest gets the most headroom; telegram the tightest burst allowance.
BASE_QUOTAS: Final[dict[Channel, ChannelQuota]] = {
    "webchat": ChannelQuota(
        soft_ip_per_minute=30,
        hard_ip_per_minute=90,
        burst_per_ten_seconds=12,
        soft_device_per_minute=24,
        soft_session_per_minute=18,
        channel_per_day=900,
    ),
    "native_guest": ChannelQuota(
        soft_ip_per_minute=45,
        hard_ip_per_minute=120,
        burst_per_ten_seconds=16,
        soft_device_per_minute=36,
        soft_session_per_minute=24,
        channel_per_day=1500,
    ),
    "telegram": ChannelQuota(
        soft_ip_per_minute=25,
        hard_ip_per_minute=80,
        burst_per_ten_seconds=10,
        soft_device_per_minute=25,
        soft_session_per_minute=25,
        channel_per_day=1200,
    ),
}


def normalize_channel(channel: str | None) -> Channel:
    """Map any channel label onto a known channel, defaulting to webchat."""
    if channel == "native_guest":
        return "native_guest"
    if channel == "telegram":
        return "telegram"
    return DEFAULT_CHANNEL


def tier_multiplier(tier: str | None) -> int:
    """Return the quota multiplier for an organization tier."""
    return FREE_TIER_MULTIPLIER if (tier or "free") == "free" else PAID_TIER_MULTIPLIER


def resolve_quotas(channel: str | None, tier: str | None) -> ChannelQuota:
    """Return the tier-scaled quotas for a channel.

    Args:
        channel: Inbound channel label; unknown labels fall back to webchat.
        tier: Organization tier. ``"free"`` keeps base values, anything else doubles them.

    Returns:
        The scaled `ChannelQuota`.
    """
    return BASE_QUOTAS[normalize_channel(channel)].scaled(tier_multiplier(tier))
