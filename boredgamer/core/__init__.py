"""Core module for the boredgamer application."""

from .tiers import TIER_POLICIES, Tier, TierPolicy, policy_for
from .types import FirestoreDocument

__all__ = ["FirestoreDocument", "TIER_POLICIES", "Tier", "TierPolicy", "policy_for"]
