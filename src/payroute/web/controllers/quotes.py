"""Quote API endpoints."""

from fastapi import APIRouter, Depends

from payroute.web.contracts.quotes import QuoteRequest, QuoteResponse
from payroute.web.dependencies import get_quote_service
from payroute.web.services.quote_service import QuoteService

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("", response_model=QuoteResponse)
async def get_quote(
    request: QuoteRequest,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """Get ordered route candidates for a payment.

    This is a READ-ONLY operation: build the chosen route with
    POST /transactions/build.
    """
    return await service.get_quote(request)
