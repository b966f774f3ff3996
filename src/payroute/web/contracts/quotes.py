"""Quote request and response contracts."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from payroute.routing.base import IntentAction, ParsedIntent


class IntentModel(BaseModel):
    """A structured payment intent."""

    action: IntentAction = Field(default=IntentAction.TRANSFER, description="transfer, swap, deposit, yield or restaking")
    from_token: str = Field(..., description="Source token symbol (e.g., USDC)")
    amount: str = Field(..., description="Decimal amount in source token units")
    from_chain: str = Field(default="ethereum", description="Source chain name")
    to_token: Optional[str] = Field(None, description="Destination token symbol")
    to_chain: Optional[str] = Field(None, description="Destination chain name")
    to_address: Optional[str] = Field(None, description="Recipient address or name")
    vault_protocol: Optional[str] = Field(None, description="Vault protocol for deposits (aave, morpho)")

    def to_intent(self) -> ParsedIntent:
        return ParsedIntent(
            action=self.action,
            from_token=self.from_token,
            amount=self.amount,
            from_chain=self.from_chain,
            to_token=self.to_token,
            to_chain=self.to_chain,
            to_address=self.to_address,
            vault_protocol=self.vault_protocol,
        )


class QuoteRequest(BaseModel):
    """Request for payment route candidates."""

    intent: IntentModel
    payer_address: str = Field(..., description="Address that signs the payment")
    slippage: Optional[float] = Field(
        None,
        ge=0,
        le=0.5,
        description="Slippage tolerance as a fraction (0.005 = 0.5%)",
    )


class RouteModel(BaseModel):
    """One route candidate."""

    id: str
    path: str
    fee: str
    estimated_time: str
    provider: str
    route_type: str


class QuoteResponse(BaseModel):
    """Ordered route candidates plus fee economics."""

    routes: list[RouteModel] = Field(default_factory=list)
    economics: dict[str, Any] = Field(default_factory=dict)
    resolved_address: str = Field(..., description="Recipient after name resolution")
    to_chain: str
    to_token: str
    strategy: Optional[str] = None
    use_vault_route: bool = False
    degraded: bool = Field(False, description="A less protected fallback route was used")
    strategy_allocations: list[dict[str, Any]] = Field(default_factory=list)
