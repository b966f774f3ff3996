"""Routing module for payment quotes and transaction construction.

Providers:
- LI.FI: cross-chain bridge and swap aggregation (standard, Composer, Contract Calls)
- Uniswap v4 Hook: same-chain swaps through the dynamic-fee hook
- Vault routers: atomic bridge + yield / restaking / multi-vault deposits on Base
"""

from payroute.routing.base import (
    IntentAction,
    ParsedIntent,
    RouteOption,
    RouteParams,
    RouteProvider,
    RouteType,
    TransactionData,
)
from payroute.routing.factory import create_hook_router, create_lifi_router, create_route_selector
from payroute.routing.lifi import LiFiClient, LiFiRouter
from payroute.routing.selector import QuoteResult, RouteSelector
from payroute.routing.v4_hook import ApprovalState, PoolKey, V4HookRouter, compute_pool_id
from payroute.routing.vaults import MultiVaultRouter, RestakingRouter, YieldRouter

__all__ = [
    # Types
    "IntentAction",
    "ParsedIntent",
    "RouteOption",
    "RouteParams",
    "RouteType",
    "TransactionData",
    "QuoteResult",
    "ApprovalState",
    "PoolKey",
    # Providers
    "RouteProvider",
    "LiFiClient",
    "LiFiRouter",
    "V4HookRouter",
    "YieldRouter",
    "RestakingRouter",
    "MultiVaultRouter",
    "RouteSelector",
    "compute_pool_id",
    # Factory functions
    "create_lifi_router",
    "create_hook_router",
    "create_route_selector",
]
