"""Volume-based protocol fee tiers.

Tier boundaries are monthly USD volume received. The fee is waived entirely
when the receiver has funded a gas tank.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, str]


@dataclass(frozen=True)
class FeeTier:
    name: str
    min_volume: Decimal
    max_volume: Optional[Decimal]  # None = unbounded
    fee_bps: Decimal

    @property
    def fee_percent(self) -> str:
        return f"{(self.fee_bps / 100).normalize():f}%"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "min_volume": str(self.min_volume),
            "max_volume": str(self.max_volume) if self.max_volume is not None else None,
            "fee_bps": str(self.fee_bps),
            "fee_percent": self.fee_percent,
        }


FEE_TIERS: tuple[FeeTier, ...] = (
    FeeTier("Starter", Decimal("0"), Decimal("1000"), Decimal("15")),
    FeeTier("Growth", Decimal("1000"), Decimal("10000"), Decimal("10")),
    FeeTier("Pro", Decimal("10000"), Decimal("100000"), Decimal("5")),
    FeeTier("Enterprise", Decimal("100000"), None, Decimal("2.5")),
)


@dataclass(frozen=True)
class FeeQuote:
    tier: FeeTier
    fee_bps: Decimal
    fee_amount: Decimal
    reason: str

    @property
    def waived(self) -> bool:
        return self.fee_bps == 0

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.name,
            "fee_bps": str(self.fee_bps),
            "fee_amount": f"{self.fee_amount:.2f}",
            "reason": self.reason,
        }


def get_fee_tier(monthly_volume: Number) -> FeeTier:
    volume = Decimal(str(monthly_volume))
    for tier in reversed(FEE_TIERS):
        if volume >= tier.min_volume:
            return tier
    return FEE_TIERS[0]


def calculate_fee(amount: Number, monthly_volume: Number, has_gas_tank: bool = False) -> FeeQuote:
    """Protocol fee for one payment of ``amount`` USD."""
    tier = get_fee_tier(monthly_volume)
    if has_gas_tank:
        return FeeQuote(tier, Decimal("0"), Decimal("0"), "Gas tank funded - fee waived")

    fee_amount = Decimal(str(amount)) * tier.fee_bps / Decimal(10_000)
    return FeeQuote(tier, tier.fee_bps, fee_amount, f"{tier.name} tier")


def get_next_tier_info(monthly_volume: Number) -> dict:
    """Current tier, next tier, volume still needed and progress percentage."""
    volume = Decimal(str(monthly_volume))
    current = get_fee_tier(volume)
    index = FEE_TIERS.index(current)

    if index == len(FEE_TIERS) - 1:
        return {
            "current_tier": current,
            "next_tier": None,
            "volume_to_next_tier": Decimal("0"),
            "percent_to_next_tier": Decimal("100"),
        }

    next_tier = FEE_TIERS[index + 1]
    tier_range = next_tier.min_volume - current.min_volume
    progress = (volume - current.min_volume) / tier_range * 100
    return {
        "current_tier": current,
        "next_tier": next_tier,
        "volume_to_next_tier": next_tier.min_volume - volume,
        "percent_to_next_tier": min(Decimal("100"), progress),
    }
