"""Transaction service.

Builds unsigned call data for a quoted route. No signing or broadcasting
happens server-side.
"""

import logging

from payroute.routing.base import TransactionData
from payroute.routing.selector import RouteSelector
from payroute.web.contracts.transactions import BuildTransactionRequest, TransactionResponse

logger = logging.getLogger(__name__)


def to_response(tx: TransactionData) -> TransactionResponse:
    return TransactionResponse(**tx.to_dict(), is_approval=tx.is_approval)


class TransactionService:
    def __init__(self, selector: RouteSelector):
        self._selector = selector

    async def build(self, request: BuildTransactionRequest) -> TransactionResponse:
        tx = await self._selector.build_transaction(
            request.route_id,
            request.intent.to_intent(),
            request.payer_address,
            slippage=request.slippage,
            quoted_amount_out=request.quoted_amount_out,
        )
        if tx.is_approval:
            logger.info(f"Route {request.route_id} needs approval first: {tx.provider}")
        return to_response(tx)
