"""Web services.

These services only read chain and aggregator state and prepare unsigned
transactions for client-side signing.
"""

from payroute.web.services.approval_service import ApprovalService
from payroute.web.services.pool_service import PoolService
from payroute.web.services.quote_service import QuoteService
from payroute.web.services.transaction_service import TransactionService

__all__ = [
    "ApprovalService",
    "PoolService",
    "QuoteService",
    "TransactionService",
]
