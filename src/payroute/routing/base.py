"""Core routing types and the abstract provider interface."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from payroute.errors import InvalidAddress, InvalidIntent

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class RouteType(str, Enum):
    """Aggregator request mode a route was produced by."""

    STANDARD = "standard"
    COMPOSER = "composer"
    CONTRACT_CALL = "contract-call"


class IntentAction(str, Enum):
    TRANSFER = "transfer"
    SWAP = "swap"
    DEPOSIT = "deposit"
    YIELD = "yield"
    RESTAKING = "restaking"

    @property
    def targets_vault(self) -> bool:
        return self in (IntentAction.DEPOSIT, IntentAction.YIELD, IntentAction.RESTAKING)


@dataclass(frozen=True)
class RouteOption:
    """One candidate way to execute a payment."""

    id: str
    path: str  # e.g. "Stargate -> Uniswap"
    fee: str  # e.g. "$0.12"
    estimated_time: str
    provider: str  # e.g. "LI.FI", "Uniswap v4 Hook"
    route_type: RouteType = RouteType.STANDARD

    @property
    def is_error(self) -> bool:
        return self.id == "error"

    @property
    def fee_value(self) -> Optional[Decimal]:
        """Numeric part of the fee string, None if it has none."""
        digits = re.sub(r"[^0-9.]", "", self.fee)
        if not digits:
            return None
        try:
            return Decimal(digits)
        except InvalidOperation:
            return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "fee": self.fee,
            "estimated_time": self.estimated_time,
            "provider": self.provider,
            "route_type": self.route_type.value,
        }


def error_route(
    detail: str,
    provider: str = "LI.FI",
    route_type: RouteType = RouteType.STANDARD,
) -> list[RouteOption]:
    """Single synthetic route standing for "this provider failed"."""
    return [RouteOption("error", detail, "N/A", "N/A", provider, route_type)]


@dataclass(frozen=True)
class TransactionData:
    """Terminal, signable unit returned to the payer's wallet."""

    to: str
    data: str
    value: str
    chain_id: int
    route_type: RouteType
    provider: str
    gas_limit: Optional[str] = None

    @property
    def is_approval(self) -> bool:
        return self.provider.endswith("Approval")

    def to_dict(self) -> dict:
        return {
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "chain_id": self.chain_id,
            "gas_limit": self.gas_limit,
            "route_type": self.route_type.value,
            "provider": self.provider,
        }


@dataclass
class ParsedIntent:
    """Structured payment intent, as produced by the intent parser or a form."""

    action: IntentAction
    from_token: str
    amount: str
    from_chain: str = "ethereum"
    to_token: Optional[str] = None
    to_chain: Optional[str] = None
    to_address: Optional[str] = None
    vault_protocol: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.action, str) and not isinstance(self.action, IntentAction):
            try:
                self.action = IntentAction(self.action.lower())
            except ValueError:
                raise InvalidIntent(f"Unknown action: {self.action}") from None

    @property
    def amount_decimal(self) -> Decimal:
        return Decimal(self.amount)

    @property
    def destination_chain(self) -> str:
        return self.to_chain or self.from_chain

    @property
    def destination_token(self) -> str:
        return self.to_token or self.from_token

    def validate(self) -> "ParsedIntent":
        """Raise InvalidIntent when a required field is missing or malformed."""
        if not self.amount:
            raise InvalidIntent("amount is required")
        if not self.from_token:
            raise InvalidIntent("fromToken is required")
        try:
            amount = Decimal(self.amount)
        except InvalidOperation:
            raise InvalidIntent(f"amount is not a decimal number: {self.amount}") from None
        if not amount.is_finite() or amount <= 0:
            raise InvalidIntent(f"amount must be positive: {self.amount}")
        if not self.to_token and not self.action.targets_vault:
            raise InvalidIntent("toToken is required for transfer and swap intents")
        if self.to_address and self.to_address.startswith("0x"):
            if not ADDRESS_RE.match(self.to_address):
                raise InvalidAddress(f"toAddress is not a valid address: {self.to_address}")
        return self


@dataclass(frozen=True)
class RouteParams:
    """Normalized parameters shared by every route provider."""

    from_address: str
    from_chain: str
    to_chain: str
    from_token: str
    to_token: str
    amount: str
    slippage: Optional[float] = None
    pool_liquidity: Optional[int] = None
    to_address: Optional[str] = None


class RouteProvider(ABC):
    """Abstract base class for route candidate providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def find_routes(self, params: RouteParams) -> list[RouteOption]:
        """
        Find route candidates for the given parameters.

        Returns:
            Candidate routes. An empty list means the provider does not apply;
            a single route with id "error" means it applies but failed.
        """
        pass
