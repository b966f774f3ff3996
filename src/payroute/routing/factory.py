"""Factory for wiring route providers and the selector from settings."""

import logging
from typing import Optional

import httpx

from payroute.config import Settings, get_settings
from payroute.incentives.referrals import ReferralRegistry
from payroute.incentives.volume import VolumeTracker
from payroute.routing.cache import QuoteCache
from payroute.routing.chain_reader import ChainReader, JsonRpcChainReader
from payroute.routing.lifi import LiFiClient, LiFiRouter
from payroute.routing.resolution import NameResolver
from payroute.routing.selector import RouteSelector
from payroute.routing.v4_hook import V4HookRouter
from payroute.utils.kvstore import KeyValueStore

logger = logging.getLogger(__name__)


def create_lifi_router(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    store: Optional[KeyValueStore] = None,
) -> LiFiRouter:
    """Create the LI.FI router.

    Args:
        settings: Settings to read the endpoint and policy from
        http_client: Injected client (tests pass one with a MockTransport)
        store: Backing store for the quote cache
    """
    settings = settings or get_settings()
    client = LiFiClient(
        base_url=settings.lifi_api_url,
        integrator=settings.lifi_integrator,
        api_key=settings.lifi_api_key,
        deny_exchanges=settings.denied_exchanges,
        http_client=http_client,
    )
    cache = QuoteCache(store=store, ttl_seconds=settings.quote_cache_ttl_seconds)
    return LiFiRouter(
        client,
        cache=cache,
        timeout_seconds=settings.quote_timeout_seconds,
        default_slippage=settings.default_slippage,
    )


def create_hook_router(
    settings: Optional[Settings] = None,
    chain_reader: Optional[ChainReader] = None,
) -> V4HookRouter:
    settings = settings or get_settings()
    reader = chain_reader or JsonRpcChainReader(settings)
    router = V4HookRouter(chain_reader=reader, settings=settings)
    deployed = [c.chain for c in router.chains.values() if c.is_deployed]
    logger.info(f"v4 hook deployed on: {', '.join(deployed) or 'no chains'}")
    return router


def create_route_selector(
    settings: Optional[Settings] = None,
    resolver: Optional[NameResolver] = None,
    lifi: Optional[LiFiRouter] = None,
    hook: Optional[V4HookRouter] = None,
    store: Optional[KeyValueStore] = None,
) -> RouteSelector:
    """Create a fully wired RouteSelector.

    The quote cache, volume tracker and referral registry share ``store`` when
    one is given; each gets its own in-memory store otherwise.
    """
    settings = settings or get_settings()
    return RouteSelector(
        lifi=lifi or create_lifi_router(settings, store=store),
        hook=hook or create_hook_router(settings),
        resolver=resolver,
        volume_tracker=VolumeTracker(store),
        referrals=ReferralRegistry(store),
        settings=settings,
    )
