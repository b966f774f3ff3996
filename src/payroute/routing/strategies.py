"""Receiver deposit strategies and allocation records.

A receiver picks what happens to incoming funds with a name record:

    strategy   = "restaking"                  (single strategy)
    strategies = "yield:60,restaking:40"      (multi-strategy, wins over strategy)

Strategies:
- liquid: keep as USDC on Base (default, no deposit)
- yield: deposit USDC into an ERC-4626 vault via the MEV-protected router
- restaking: bridge to WETH on Base and deposit into Renzo via the restaking router
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Iterable, Optional

from payroute.errors import InvalidAllocation
from payroute.routing.tokens import BASE, TOKENS

logger = logging.getLogger(__name__)


class StrategyType(str, Enum):
    YIELD = "yield"
    RESTAKING = "restaking"
    LIQUID = "liquid"


@dataclass(frozen=True)
class Strategy:
    id: StrategyType
    name: str
    description: str
    dest_chain_id: int
    dest_token: str
    protocol: str
    gas_limit: str
    output_token: Optional[str] = None

    @property
    def dest_token_address(self) -> str:
        return TOKENS[self.dest_token].addresses[self.dest_chain_id]


STRATEGIES: dict[StrategyType, Strategy] = {
    StrategyType.YIELD: Strategy(
        id=StrategyType.YIELD,
        name="Yield Vault",
        description="Earn yield on USDC via Aave or Morpho",
        dest_chain_id=BASE,
        dest_token="USDC",
        protocol="Aave v3",
        gas_limit="300000",
    ),
    StrategyType.RESTAKING: Strategy(
        id=StrategyType.RESTAKING,
        name="Restaking",
        description="Earn EigenLayer points via Renzo ezETH",
        dest_chain_id=BASE,
        dest_token="WETH",
        protocol="Renzo",
        gas_limit="350000",
        output_token="ezETH",
    ),
    StrategyType.LIQUID: Strategy(
        id=StrategyType.LIQUID,
        name="Liquid",
        description="Keep as USDC in wallet (no deposit)",
        dest_chain_id=BASE,
        dest_token="USDC",
        protocol="Direct",
        gas_limit="100000",
    ),
}


@dataclass
class StrategyAllocation:
    strategy: StrategyType
    percentage: int  # 0-100

    def to_dict(self) -> dict:
        return {"strategy": self.strategy.value, "percentage": self.percentage}


def _lookup(strategy_id: Optional[str]) -> Optional[StrategyType]:
    if not strategy_id:
        return None
    try:
        return StrategyType(strategy_id.lower().strip())
    except ValueError:
        return None


def get_strategy(strategy_id: Optional[str]) -> Strategy:
    """Strategy for an id, liquid when unknown or unset."""
    return STRATEGIES[_lookup(strategy_id) or StrategyType.LIQUID]


def is_restaking_strategy(strategy_id: Optional[str]) -> bool:
    return _lookup(strategy_id) == StrategyType.RESTAKING


def _parse_multi_strategy(record: str) -> list[StrategyAllocation]:
    allocations = []
    for part in record.split(","):
        strategy_id, _, percent = part.strip().partition(":")
        strategy = _lookup(strategy_id)
        try:
            percentage = int(percent.strip())
        except ValueError:
            continue
        if strategy is not None and percentage > 0:
            allocations.append(StrategyAllocation(strategy, percentage))

    if not allocations:
        return [StrategyAllocation(StrategyType.LIQUID, 100)]

    total = sum(a.percentage for a in allocations)
    if total != 100:
        # Records are user-edited; rescale rather than reject
        logger.debug(f"Normalizing strategy allocation record {record!r} (sum {total})")
        for allocation in allocations:
            allocation.percentage = round(allocation.percentage * 100 / total)

    return allocations


def parse_strategy_allocation(
    strategy_record: Optional[str],
    strategies_record: Optional[str],
) -> list[StrategyAllocation]:
    """Allocation list from the receiver's records. Multi-strategy takes precedence."""
    if strategies_record:
        return _parse_multi_strategy(strategies_record)

    strategy = _lookup(strategy_record)
    if strategy is not None:
        return [StrategyAllocation(strategy, 100)]

    return [StrategyAllocation(StrategyType.LIQUID, 100)]


def format_strategy_allocation(allocations: list[StrategyAllocation]) -> str:
    """Inverse of parse_strategy_allocation, in the shortest form."""
    if not allocations:
        return "liquid:100"
    if len(allocations) == 1 and allocations[0].percentage == 100:
        return allocations[0].strategy.value
    return ",".join(
        f"{a.strategy.value}:{a.percentage}" for a in allocations if a.percentage > 0
    )


def validate_allocation(percentages: Iterable[int]) -> list[int]:
    """Percentages must be positive and sum to exactly 100.

    Raises:
        InvalidAllocation: empty list, non-positive entry, or sum != 100
    """
    values = list(percentages)
    if not values:
        raise InvalidAllocation("Allocation list is empty")
    if any(p <= 0 for p in values):
        raise InvalidAllocation(f"Allocation percentages must be positive: {values}")
    total = sum(values)
    if total != 100:
        raise InvalidAllocation(f"Allocation percentages must sum to 100, got {total}")
    return values


def split_amount(total: int, percentages: list[int]) -> list[int]:
    """Split base units by percentage. The last share absorbs rounding dust."""
    shares = [total * p // 100 for p in percentages[:-1]]
    shares.append(total - sum(shares))
    return shares


def calculate_strategy_amounts(
    total_amount: str,
    allocations: list[StrategyAllocation],
) -> list[tuple[StrategyType, str]]:
    """Per-strategy decimal amounts, truncated to 6 places."""
    total = Decimal(total_amount)
    quantum = Decimal("0.000001")
    return [
        (
            a.strategy,
            str((total * a.percentage / 100).quantize(quantum, rounding=ROUND_DOWN)),
        )
        for a in allocations
    ]
