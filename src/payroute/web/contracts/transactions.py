"""Transaction contracts.

Transactions are returned unsigned; the payer's wallet signs and broadcasts.
"""

from typing import Optional

from pydantic import BaseModel, Field

from payroute.web.contracts.quotes import IntentModel


class BuildTransactionRequest(BaseModel):
    """Request to build call data for a quoted route."""

    route_id: str = Field(..., description="Route id from a previous quote")
    intent: IntentModel
    payer_address: str = Field(..., description="Address that signs the transaction")
    slippage: Optional[float] = Field(None, ge=0, le=0.5, description="Slippage as a fraction")
    quoted_amount_out: Optional[int] = Field(
        None,
        ge=0,
        description="Expected output in base units, used for the hook swap minimum",
    )


class TransactionResponse(BaseModel):
    """An unsigned transaction for client-side signing.

    When ``is_approval`` is set the payer must send this first and then build
    the route again.
    """

    to: str = Field(..., description="Contract to call")
    data: str = Field(..., description="Hex encoded call data")
    value: str = Field(default="0", description="Value in wei (decimal string)")
    chain_id: int = Field(..., description="EVM chain ID")
    gas_limit: Optional[str] = Field(None, description="Gas limit (decimal string)")
    route_type: str
    provider: str
    is_approval: bool = False
