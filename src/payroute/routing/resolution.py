"""Collaborator interfaces: receiver name resolution and intent parsing.

Both collaborators live outside this service. Only the shapes they return are
consumed here; in-memory implementations back tests and local development.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol

from payroute.routing.base import ParsedIntent
from payroute.routing.strategies import StrategyAllocation, parse_strategy_allocation
from payroute.routing.vaults import VaultAllocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiverProfile:
    """Receiver address and payment preferences. Preferences are defaults only."""

    address: str
    preferred_chain: Optional[str] = None
    preferred_token: Optional[str] = None
    preferred_slippage: Optional[str] = None  # percent, e.g. "0.5"
    max_fee: Optional[str] = None  # USD, e.g. "1.50"
    vault_address: Optional[str] = None
    strategy: Optional[str] = None
    strategies: Optional[str] = None  # "yield:60,restaking:40"
    vaults: Optional[str] = None  # "0xabc...:60,0xdef...:40"
    referred_by: Optional[str] = None
    has_gas_tank: bool = False

    @property
    def strategy_allocations(self) -> list[StrategyAllocation]:
        return parse_strategy_allocation(self.strategy, self.strategies)

    @property
    def vault_allocations(self) -> tuple[VaultAllocation, ...]:
        return parse_vault_allocations(self.vaults)

    @property
    def max_fee_value(self) -> Optional[Decimal]:
        """Positive numeric max fee, None when unset or unparseable."""
        if not self.max_fee:
            return None
        try:
            value = Decimal(self.max_fee)
        except InvalidOperation:
            return None
        return value if value.is_finite() and value > 0 else None

    @property
    def slippage(self) -> Optional[float]:
        """Preferred slippage as a fraction (record holds percent)."""
        if not self.preferred_slippage:
            return None
        try:
            value = float(self.preferred_slippage)
        except ValueError:
            return None
        return value / 100 if value > 0 else None


def parse_vault_allocations(record: Optional[str]) -> tuple[VaultAllocation, ...]:
    """Parse "0xA:60,0xB:40". Malformed entries are skipped; sums are not checked here."""
    if not record:
        return ()
    allocations = []
    for part in record.split(","):
        vault, _, percent = part.strip().partition(":")
        try:
            allocations.append(VaultAllocation(vault.strip(), int(percent.strip())))
        except ValueError:
            logger.debug(f"Skipping malformed vault allocation entry: {part!r}")
    return tuple(allocations)


class NameResolver(Protocol):
    async def resolve(self, name: str) -> Optional[ReceiverProfile]:
        ...


class IntentParser(Protocol):
    async def parse(self, text: str) -> tuple[ParsedIntent, float]:
        """Structured intent plus a confidence score in [0, 1]."""
        ...


class StaticNameResolver:
    """Dictionary-backed resolver, case-insensitive on names."""

    def __init__(self, profiles: Optional[dict[str, ReceiverProfile]] = None):
        self._profiles = {k.lower(): v for k, v in (profiles or {}).items()}

    def register(self, name: str, profile: ReceiverProfile) -> None:
        self._profiles[name.lower()] = profile

    async def resolve(self, name: str) -> Optional[ReceiverProfile]:
        return self._profiles.get(name.lower())


@dataclass
class StaticIntentParser:
    """Parser returning canned intents for known texts (tests and demos)."""

    intents: dict[str, ParsedIntent] = field(default_factory=dict)

    async def parse(self, text: str) -> tuple[ParsedIntent, float]:
        intent = self.intents.get(text.strip().lower())
        if intent is None:
            raise LookupError(f"No canned intent for: {text!r}")
        return intent, 1.0


def intent_from_payload(payload: dict) -> ParsedIntent:
    """Build a ParsedIntent from a parser's camelCase JSON output."""
    return ParsedIntent(
        action=payload.get("action") or "transfer",
        from_token=payload.get("fromToken") or "USDC",
        amount=str(payload.get("amount") or ""),
        from_chain=payload.get("fromChain") or "ethereum",
        to_token=payload.get("toToken") or None,
        to_chain=payload.get("toChain") or None,
        to_address=payload.get("toAddress") or None,
        vault_protocol=payload.get("vaultProtocol") or None,
    )
