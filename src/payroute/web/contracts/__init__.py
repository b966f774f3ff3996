"""Request and response contracts for the web layer.

These Pydantic models define the HTTP interface. Every response is either
read-only data or an unsigned transaction for client-side signing.
"""

from payroute.web.contracts.approvals import ApprovalCheckRequest, ApprovalCheckResponse
from payroute.web.contracts.pools import PoolIdResponse, PoolKeyModel
from payroute.web.contracts.quotes import IntentModel, QuoteRequest, QuoteResponse, RouteModel
from payroute.web.contracts.transactions import BuildTransactionRequest, TransactionResponse

__all__ = [
    # Quote contracts
    "IntentModel",
    "QuoteRequest",
    "QuoteResponse",
    "RouteModel",
    # Transaction contracts
    "BuildTransactionRequest",
    "TransactionResponse",
    # Approval contracts
    "ApprovalCheckRequest",
    "ApprovalCheckResponse",
    # Pool contracts
    "PoolIdResponse",
    "PoolKeyModel",
]
