"""Transaction API endpoints.

These endpoints prepare unsigned transactions for client-side signing.
"""

from fastapi import APIRouter, Depends

from payroute.web.contracts.transactions import BuildTransactionRequest, TransactionResponse
from payroute.web.dependencies import get_transaction_service
from payroute.web.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("/build", response_model=TransactionResponse)
async def build_transaction(
    request: BuildTransactionRequest,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    """Build call data for a quoted route.

    The response may be an approval (``is_approval``); the client sends it and
    calls this endpoint again to get the payment itself.
    """
    return await service.build(request)
