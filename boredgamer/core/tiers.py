"""Subscription tiers and the policies attached to them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class Tier(str, Enum):
    """Subscription level of a studio."""

    ENTERPRISE = "enterprise"
    PROFESSIONAL = "professional"
    INDEPENDENT = "independent"
    FREE = "free"


@dataclass(frozen=True)
class TierPolicy:
    """Limits that apply to every studio on a tier."""

    retention_days: int


TIER_POLICIES: Mapping[Tier, TierPolicy] = MappingProxyType(
    {
        Tier.ENTERPRISE: TierPolicy(retention_days=365),
        Tier.PROFESSIONAL: TierPolicy(retention_days=90),
        Tier.INDEPENDENT: TierPolicy(retention_days=30),
        Tier.FREE: TierPolicy(retention_days=7),
    }
)


def resolve_tier(raw_tier: Optional[str]) -> Tier:
    """Map a stored tier value to a Tier, falling back to the free tier."""
    try:
        return Tier(raw_tier)
    except ValueError:
        return Tier.FREE


def policy_for(raw_tier: Optional[str]) -> TierPolicy:
    """Return the policy for a stored tier value."""
    return TIER_POLICIES[resolve_tier(raw_tier)]
