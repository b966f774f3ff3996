"""Hook pool API endpoints."""

from fastapi import APIRouter, Depends, Query

from payroute.web.contracts.pools import PoolIdResponse
from payroute.web.dependencies import get_pool_service
from payroute.web.services.pool_service import PoolService

router = APIRouter(prefix="/pools", tags=["pools"])


@router.get("/id", response_model=PoolIdResponse)
async def get_pool_id(
    chain: str = Query(..., description="Chain name"),
    token_a: str = Query(..., description="First token symbol"),
    token_b: str = Query(..., description="Second token symbol"),
    service: PoolService = Depends(get_pool_service),
) -> PoolIdResponse:
    """Deterministic pool id for a pair; argument order does not matter."""
    return service.get_pool_id(chain, token_a, token_b)
