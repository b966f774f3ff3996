"""Hook pool identity lookups."""

from payroute.errors import NoRouteFound, ValidationError
from payroute.routing.base import RouteParams
from payroute.routing.tokens import chain_name, resolve_chain_id
from payroute.routing.v4_hook import V4HookRouter
from payroute.web.contracts.pools import PoolIdResponse, PoolKeyModel


class PoolService:
    def __init__(self, hook: V4HookRouter):
        self._hook = hook

    def get_pool_id(self, chain: str, token_a: str, token_b: str) -> PoolIdResponse:
        """Pool id and key the hook would route a token_a/token_b swap through.

        Raises:
            ValidationError: unknown chain
            NoRouteFound: the hook does not apply to this pair on this chain
        """
        chain_id = resolve_chain_id(chain)
        if chain_id is None:
            raise ValidationError(f"Unsupported chain: {chain}")

        name = chain_name(chain_id)
        pool = self._hook.resolve_pool(
            RouteParams(
                from_address="",
                from_chain=name,
                to_chain=name,
                from_token=token_a,
                to_token=token_b,
                amount="0",
            )
        )
        if pool is None:
            raise NoRouteFound(f"No hook pool for {token_a}/{token_b} on {name}")

        key = pool.pool_key
        return PoolIdResponse(
            chain=name,
            chain_id=chain_id,
            pool_id=pool.pool_id,
            pool_key=PoolKeyModel(
                currency0=key.currency0,
                currency1=key.currency1,
                fee=key.fee,
                tick_spacing=key.tick_spacing,
                hooks=key.hooks,
            ),
            tier=pool.tier.name,
            tier_fee=pool.tier.fee,
        )
