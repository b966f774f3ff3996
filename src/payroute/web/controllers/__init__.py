"""HTTP controllers for the web API.

Controllers never sign or broadcast; every response is read-only data or an
unsigned transaction.
"""

from payroute.web.controllers.approvals import router as approvals_router
from payroute.web.controllers.pools import router as pools_router
from payroute.web.controllers.quotes import router as quotes_router
from payroute.web.controllers.transactions import router as transactions_router

__all__ = [
    "approvals_router",
    "pools_router",
    "quotes_router",
    "transactions_router",
]
