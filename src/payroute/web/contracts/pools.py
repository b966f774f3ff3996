"""Hook pool contracts."""

from pydantic import BaseModel, Field


class PoolKeyModel(BaseModel):
    currency0: str
    currency1: str
    fee: int = Field(..., description="PoolKey fee field (dynamic fee flag)")
    tick_spacing: int
    hooks: str


class PoolIdResponse(BaseModel):
    """Deterministic pool identity for a token pair on a chain."""

    chain: str
    chain_id: int
    pool_id: str
    pool_key: PoolKeyModel
    tier: str = Field(..., description="stable, bluechip or mixed")
    tier_fee: int = Field(..., description="Tier LP fee in pips")
