"""Quote service.

Wraps RouteSelector.get_quote for the HTTP layer. Nothing is executed here;
domain errors propagate to the app's exception handlers.
"""

import logging

from payroute.routing.selector import RouteSelector
from payroute.web.contracts.quotes import QuoteRequest, QuoteResponse

logger = logging.getLogger(__name__)


class QuoteService:
    """Service for fetching payment route candidates."""

    def __init__(self, selector: RouteSelector):
        self._selector = selector

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        """Get ordered route candidates for a payment intent.

        Args:
            request: Quote request parameters

        Returns:
            QuoteResponse with routes and economics
        """
        result = await self._selector.get_quote(
            request.intent.to_intent(),
            request.payer_address,
            slippage=request.slippage,
        )
        logger.info(
            f"Quote {request.intent.from_token}@{request.intent.from_chain} -> "
            f"{result.to_token}@{result.to_chain}: {len(result.routes)} routes"
            + (" (degraded)" if result.degraded else "")
        )
        return QuoteResponse(**result.to_dict())
