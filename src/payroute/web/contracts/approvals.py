"""Approval check contracts."""

from typing import Optional

from pydantic import BaseModel, Field

from payroute.web.contracts.transactions import TransactionResponse


class ApprovalCheckRequest(BaseModel):
    """Check whether an owner can spend ``amount`` of a token through a route."""

    chain: str = Field(..., description="Chain name")
    token: str = Field(..., description="Token symbol or address")
    owner: str = Field(..., description="Token owner (the payer)")
    amount: str = Field(..., description="Decimal amount in token units")
    spender: Optional[str] = Field(
        None,
        description="ERC-20 spender to check; omit to check the hook's Permit2 chain",
    )


class ApprovalCheckResponse(BaseModel):
    state: str = Field(..., description="needs-token-approval, needs-gateway-approval or ready")
    spender: Optional[str] = None
    allowance: Optional[str] = Field(None, description="Current ERC-20 allowance (base units)")
    required: str = Field(..., description="Required amount (base units)")
    approval_transaction: Optional[TransactionResponse] = None
