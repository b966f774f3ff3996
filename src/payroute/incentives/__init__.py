"""Receiver economics: volume fee tiers, referral shares and volume tracking."""

from payroute.incentives.fee_tiers import (
    FEE_TIERS,
    FeeQuote,
    FeeTier,
    calculate_fee,
    get_fee_tier,
    get_next_tier_info,
)
from payroute.incentives.referrals import ReferralRegistry, ReferralReward
from payroute.incentives.volume import VolumeTracker

__all__ = [
    "FEE_TIERS",
    "FeeQuote",
    "FeeTier",
    "ReferralRegistry",
    "ReferralReward",
    "VolumeTracker",
    "calculate_fee",
    "get_fee_tier",
    "get_next_tier_info",
]
