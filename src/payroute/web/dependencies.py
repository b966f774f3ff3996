"""FastAPI dependencies.

The selector is created once by the app lifespan and kept on ``app.state``;
services are thin per-request wrappers around it.
"""

from fastapi import Depends, Request

from payroute.routing.selector import RouteSelector
from payroute.web.services import ApprovalService, PoolService, QuoteService, TransactionService


def get_selector(request: Request) -> RouteSelector:
    return request.app.state.selector


def get_quote_service(selector: RouteSelector = Depends(get_selector)) -> QuoteService:
    return QuoteService(selector)


def get_transaction_service(selector: RouteSelector = Depends(get_selector)) -> TransactionService:
    return TransactionService(selector)


def get_approval_service(selector: RouteSelector = Depends(get_selector)) -> ApprovalService:
    return ApprovalService(selector.hook)


def get_pool_service(selector: RouteSelector = Depends(get_selector)) -> PoolService:
    return PoolService(selector.hook)
