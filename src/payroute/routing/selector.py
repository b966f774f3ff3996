"""Route selection and transaction construction.

get_quote() gathers candidates from the vault routers, the hook router and the
bridge aggregator, then orders and filters them:

1. Vault-targeting payments (by intent action or receiver configuration) try the
   specialised router first; success returns only that route.
2. Same token on the same chain is a direct ERC-20 transfer, no external call.
3. Otherwise hook and bridge candidates are fetched concurrently. Stable pairs on
   a chain with a deployed hook list hook candidates first.
4. The receiver's max fee drops candidates above it, unless nothing would remain.

build_transaction() re-derives the request behind a chosen route id and returns
signable call data, or an approval transaction when the payer is not ready.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from web3 import Web3

from payroute.config import Settings, get_settings
from payroute.errors import InvalidAddress, InvalidAllocation, NoRouteFound, UnsupportedToken
from payroute.incentives.fee_tiers import calculate_fee, get_fee_tier, get_next_tier_info
from payroute.incentives.referrals import REFERRAL_FEE_SHARE, ReferralRegistry, ReferralReward
from payroute.incentives.volume import VolumeTracker
from payroute.routing.base import (
    IntentAction,
    ParsedIntent,
    RouteOption,
    RouteParams,
    RouteType,
    TransactionData,
)
from payroute.routing.erc20 import encode_transfer
from payroute.routing.lifi import (
    COMPOSER_PROVIDER_NAME,
    LiFiRouter,
    extract_transaction,
    resolve_route_chains,
)
from payroute.routing.resolution import NameResolver, ReceiverProfile
from payroute.routing.strategies import StrategyAllocation, StrategyType, is_restaking_strategy
from payroute.routing.tokens import (
    chain_name,
    is_stablecoin,
    resolve_chain_id,
    resolve_decimals,
    resolve_preferred_chain_for_token,
    resolve_token_address,
    to_base_units,
)
from payroute.routing.v4_hook import V4HookRouter
from payroute.routing.vaults import (
    MultiVaultRouteParams,
    MultiVaultRouter,
    RestakingRouter,
    VaultRouteError,
    VaultRouteOutcome,
    VaultRouteParams,
    VaultRouteResult,
    YieldRouter,
    is_vault_configured,
)

logger = logging.getLogger(__name__)

DIRECT_TRANSFER_ID = "direct-transfer"
COMPOSER_ROUTE_ID = "lifi-composer-0"
VAULT_ROUTE_IDS = frozenset(
    {"yield-route-0", "mev-protected-yield-0", "restaking-route-0", "multi-vault-0"}
)
DEFAULT_VAULT_PROTOCOL = "aave"


@dataclass(frozen=True)
class ResolvedPayment:
    """Intent after receiver resolution and destination defaults."""

    recipient: str
    receiver_key: str  # name when one was given, else the address
    to_chain: str
    to_token: str
    profile: Optional[ReceiverProfile] = None
    slippage: Optional[float] = None


@dataclass
class QuoteResult:
    routes: list[RouteOption]
    economics: dict
    resolved_address: str
    to_chain: str
    to_token: str
    strategy: Optional[str] = None
    use_vault_route: bool = False
    degraded: bool = False
    strategy_allocations: list[StrategyAllocation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "routes": [r.to_dict() for r in self.routes],
            "economics": self.economics,
            "resolved_address": self.resolved_address,
            "to_chain": self.to_chain,
            "to_token": self.to_token,
            "strategy": self.strategy,
            "use_vault_route": self.use_vault_route,
            "degraded": self.degraded,
            "strategy_allocations": [a.to_dict() for a in self.strategy_allocations],
        }


@dataclass(frozen=True)
class _VaultPlan:
    """Which specialised router applies, and the chain and token the quote delivers."""

    kind: str  # "restaking" | "multi-vault" | "yield" | "composer"
    to_chain: str
    to_token: str
    strategy: Optional[str] = None


class RouteSelector:
    """Orchestrates every route provider behind one quote/build interface."""

    def __init__(
        self,
        lifi: LiFiRouter,
        hook: V4HookRouter,
        resolver: Optional[NameResolver] = None,
        yield_router: Optional[YieldRouter] = None,
        restaking_router: Optional[RestakingRouter] = None,
        multi_vault_router: Optional[MultiVaultRouter] = None,
        volume_tracker: Optional[VolumeTracker] = None,
        referrals: Optional[ReferralRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.lifi = lifi
        self.hook = hook
        self.resolver = resolver
        self.yield_router = yield_router or YieldRouter(lifi, self.settings)
        self.restaking_router = restaking_router or RestakingRouter(lifi, self.settings)
        self.multi_vault_router = multi_vault_router or MultiVaultRouter(
            lifi, self.settings, self.yield_router
        )
        self.volume_tracker = volume_tracker or VolumeTracker()
        self.referrals = referrals or ReferralRegistry()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_payment(
        self,
        intent: ParsedIntent,
        payer_address: str,
        slippage: Optional[float] = None,
    ) -> ResolvedPayment:
        """Validate the intent and resolve the receiver and destination.

        Raises:
            InvalidIntent: missing or malformed intent fields
            InvalidAddress: payer address malformed or receiver name unresolvable
        """
        intent.validate()
        if not Web3.is_address(payer_address):
            raise InvalidAddress(f"Invalid payer address: {payer_address}")

        profile = None
        target = intent.to_address or payer_address
        if target.startswith("0x"):
            recipient = target
        else:
            if self.resolver is None:
                raise InvalidAddress(f"Cannot resolve name {target!r}: no resolver configured")
            profile = await self.resolver.resolve(target)
            if profile is None or not profile.address:
                raise InvalidAddress(f'Could not resolve name "{target}"')
            recipient = profile.address

        to_chain = intent.to_chain or (profile and profile.preferred_chain) or intent.from_chain
        to_token = intent.to_token or (profile and profile.preferred_token) or intent.from_token

        to_chain_id = resolve_chain_id(to_chain)
        if to_chain_id is None or resolve_token_address(to_token, to_chain_id) is None:
            preferred = resolve_preferred_chain_for_token(to_token)
            if preferred is not None:
                logger.info(f"{to_token} not available on {to_chain}, redirecting to {chain_name(preferred)}")
                to_chain = chain_name(preferred)

        return ResolvedPayment(
            recipient=recipient,
            receiver_key=target,
            to_chain=to_chain.lower(),
            to_token=to_token.upper(),
            profile=profile,
            slippage=slippage if slippage is not None else (profile.slippage if profile else None),
        )

    def _route_params(self, intent: ParsedIntent, payment: ResolvedPayment, payer_address: str) -> RouteParams:
        return RouteParams(
            from_address=payer_address,
            from_chain=intent.from_chain.lower(),
            to_chain=payment.to_chain,
            from_token=intent.from_token.upper(),
            to_token=payment.to_token,
            amount=intent.amount,
            slippage=payment.slippage,
            to_address=payment.recipient,
        )

    # ------------------------------------------------------------------
    # Specialised vault routes
    # ------------------------------------------------------------------

    def _vault_plan(self, intent: ParsedIntent, payment: ResolvedPayment) -> Optional[_VaultPlan]:
        profile = payment.profile
        if intent.action == IntentAction.RESTAKING or (profile and is_restaking_strategy(profile.strategy)):
            return _VaultPlan("restaking", "base", "WETH", StrategyType.RESTAKING.value)
        if profile and len(profile.vault_allocations) > 1:
            return _VaultPlan("multi-vault", "base", "USDC", StrategyType.YIELD.value)
        if intent.action == IntentAction.YIELD or (profile and is_vault_configured(profile.vault_address)):
            return _VaultPlan("yield", "base", "USDC", StrategyType.YIELD.value)
        if intent.action == IntentAction.DEPOSIT:
            return _VaultPlan("composer", payment.to_chain, payment.to_token)
        return None

    async def _vault_outcome(
        self,
        plan: _VaultPlan,
        intent: ParsedIntent,
        payment: ResolvedPayment,
        payer_address: str,
    ) -> VaultRouteOutcome:
        profile = payment.profile
        if plan.kind == "multi-vault":
            try:
                return await self.multi_vault_router.get_quote(
                    MultiVaultRouteParams(
                        from_address=payer_address,
                        from_chain=intent.from_chain,
                        from_token=intent.from_token,
                        amount=intent.amount,
                        recipient=payment.recipient,
                        allocations=profile.vault_allocations,
                        slippage=payment.slippage,
                    )
                )
            except InvalidAllocation as e:
                logger.warning(f"Ignoring vault allocations for {payment.receiver_key}: {e}")
                return VaultRouteError(str(e))

        params = VaultRouteParams(
            from_address=payer_address,
            from_chain=intent.from_chain,
            from_token=intent.from_token,
            amount=intent.amount,
            recipient=payment.recipient,
            vault=(profile.vault_address if profile and profile.vault_address else None)
            or self.settings.default_yield_vault,
            slippage=payment.slippage,
        )
        if plan.kind == "restaking":
            return await self.restaking_router.get_quote(params)
        return await self.yield_router.get_quote(params)

    async def _composer_routes(
        self, intent: ParsedIntent, payment: ResolvedPayment, payer_address: str
    ) -> list[RouteOption]:
        params = self._route_params(intent, payment, payer_address)
        return await self.lifi.find_composer_routes(
            params, intent.vault_protocol or DEFAULT_VAULT_PROTOCOL
        )

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    async def get_quote(
        self,
        intent: ParsedIntent,
        payer_address: str,
        slippage: Optional[float] = None,
    ) -> QuoteResult:
        """Ordered, filtered route candidates plus display economics.

        Raises:
            ValidationError: the intent or an address is invalid
            NoRouteFound: every provider failed or returned nothing
        """
        payment = await self.resolve_payment(intent, payer_address, slippage)
        profile = payment.profile
        allocations = profile.strategy_allocations if profile else []
        economics = await self.compute_economics(intent, payment)

        plan = self._vault_plan(intent, payment)
        if plan is not None:
            if plan.kind == "composer":
                routes = await self._composer_routes(intent, payment, payer_address)
                if routes and not routes[0].is_error:
                    return QuoteResult(
                        routes=routes,
                        economics=economics,
                        resolved_address=payment.recipient,
                        to_chain=payment.to_chain,
                        to_token=payment.to_token,
                        use_vault_route=True,
                        strategy_allocations=allocations,
                    )
                reason = routes[0].path if routes else "no routes"
                logger.warning(f"Composer route failed, falling back to standard: {reason}")
            else:
                outcome = await self._vault_outcome(plan, intent, payment, payer_address)
                if isinstance(outcome, VaultRouteResult):
                    return QuoteResult(
                        routes=[outcome.route],
                        economics=economics,
                        resolved_address=payment.recipient,
                        to_chain=plan.to_chain,
                        to_token=plan.to_token,
                        strategy=plan.strategy,
                        use_vault_route=True,
                        degraded=outcome.degraded,
                        strategy_allocations=allocations,
                    )
                logger.warning(f"{plan.kind} route failed, falling back to standard: {outcome.error}")

        routes = await self._standard_candidates(intent, payment, payer_address)
        routes = self._apply_max_fee(routes, profile)

        return QuoteResult(
            routes=routes,
            economics=economics,
            resolved_address=payment.recipient,
            to_chain=payment.to_chain,
            to_token=payment.to_token,
            strategy_allocations=allocations,
        )

    @staticmethod
    def _is_direct_transfer(intent: ParsedIntent, payment: ResolvedPayment) -> bool:
        return (
            intent.from_token.upper() == payment.to_token.upper()
            and intent.from_chain.lower() == payment.to_chain.lower()
        )

    async def _standard_candidates(
        self, intent: ParsedIntent, payment: ResolvedPayment, payer_address: str
    ) -> list[RouteOption]:
        if self._is_direct_transfer(intent, payment):
            return [
                RouteOption(
                    id=DIRECT_TRANSFER_ID,
                    path=f"{intent.from_token.upper()} -> {payment.to_token}",
                    fee="$0.00",
                    estimated_time="< 1 min",
                    provider="Direct Transfer",
                    route_type=RouteType.STANDARD,
                )
            ]

        params = self._route_params(intent, payment, payer_address)
        hook_routes, bridge_routes = await asyncio.gather(
            self.hook.find_hook_routes(params),
            self.lifi.find_standard_routes(params),
        )

        hook_first = (
            is_stablecoin(params.from_token)
            and is_stablecoin(params.to_token)
            and params.from_chain == params.to_chain
            and self.hook.is_deployed(params.from_chain)
        )
        ordered = hook_routes + bridge_routes if hook_first else bridge_routes + hook_routes

        viable = [r for r in ordered if not r.is_error]
        if not viable:
            details = "; ".join(r.path for r in ordered if r.is_error) or "no provider returned a route"
            raise NoRouteFound(f"No route found: {details}")
        return viable

    @staticmethod
    def _apply_max_fee(routes: list[RouteOption], profile: Optional[ReceiverProfile]) -> list[RouteOption]:
        max_fee = profile.max_fee_value if profile else None
        if max_fee is None:
            return routes
        filtered = [r for r in routes if r.fee_value is None or r.fee_value <= max_fee]
        if not filtered:
            logger.info(f"Max fee {max_fee} would drop every route; ignoring the cap")
            return routes
        return filtered

    # ------------------------------------------------------------------
    # Economics
    # ------------------------------------------------------------------

    async def compute_economics(self, intent: ParsedIntent, payment: ResolvedPayment) -> dict:
        """Fee tier and referral split for display. Never alters route ordering."""
        volume = await self.volume_tracker.get_monthly_volume(payment.receiver_key)
        has_gas_tank = bool(payment.profile and payment.profile.has_gas_tank)
        next_tier = get_next_tier_info(volume)

        economics = {
            "monthly_volume": str(volume),
            "tier": get_fee_tier(volume).to_dict(),
            "next_tier": next_tier["next_tier"].name if next_tier["next_tier"] else None,
            "volume_to_next_tier": str(next_tier["volume_to_next_tier"]),
            "fee": None,
            "referral": None,
        }

        # Fee amounts are only meaningful for USD-denominated payments
        if not is_stablecoin(intent.from_token):
            return economics

        fee = calculate_fee(intent.amount_decimal, volume, has_gas_tank)
        economics["fee"] = fee.to_dict()

        reward = await self.referrals.calculate_reward(payment.receiver_key, fee.fee_amount)
        profile = payment.profile
        if reward.referrer is None and profile and profile.referred_by and fee.fee_amount > 0:
            # Referrer taken from the receiver's own record
            share = fee.fee_amount * REFERRAL_FEE_SHARE
            reward = ReferralReward(profile.referred_by.lower(), share, fee.fee_amount - share)
        if reward.referrer:
            economics["referral"] = reward.to_dict()
        return economics

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    async def build_transaction(
        self,
        route_id: str,
        intent: ParsedIntent,
        payer_address: str,
        slippage: Optional[float] = None,
        quoted_amount_out: Optional[int] = None,
    ) -> TransactionData:
        """Signable transaction for a previously quoted route.

        Raises:
            ValidationError: the intent or an address is invalid
            NoRouteFound: the route id is unknown or no longer available
            ProviderError: the aggregator or an RPC read failed
        """
        payment = await self.resolve_payment(intent, payer_address, slippage)

        if route_id == "error":
            raise NoRouteFound("Cannot build a transaction for an error route")

        if route_id == DIRECT_TRANSFER_ID:
            if not self._is_direct_transfer(intent, payment):
                raise NoRouteFound("Direct transfer requires the same token and chain")
            return self._build_direct_transfer(intent, payment)

        params = self._route_params(intent, payment, payer_address)

        if route_id.startswith("v4-"):
            pool = self.hook.resolve_pool(params)
            if pool is None or route_id != f"v4-{pool.pool_id[:18]}":
                raise NoRouteFound(f"Hook route {route_id} is no longer available")
            return await self.hook.build_transaction(params, quoted_amount_out)

        if route_id.startswith("lifi-route-"):
            return await self.lifi.build_transaction(self.lifi.build_standard_request(params))

        if route_id == COMPOSER_ROUTE_ID:
            request = self.lifi.build_composer_request(
                params, intent.vault_protocol or DEFAULT_VAULT_PROTOCOL
            )
            return await self.lifi.build_transaction(request, provider=COMPOSER_PROVIDER_NAME)

        if route_id in VAULT_ROUTE_IDS:
            plan = self._vault_plan(intent, payment)
            if plan is None or plan.kind == "composer":
                raise NoRouteFound(f"Route {route_id} does not apply to this payment")
            outcome = await self._vault_outcome(plan, intent, payment, payer_address)
            if not isinstance(outcome, VaultRouteResult) or outcome.route.id != route_id:
                raise NoRouteFound(f"Route {route_id} is no longer available")
            from_chain_id, _ = resolve_route_chains(intent.from_chain, None)
            return extract_transaction(
                outcome.quote,
                route_type=outcome.route.route_type,
                provider=outcome.route.provider,
                fallback_chain_id=from_chain_id,
            )

        raise NoRouteFound(f"Unknown route id: {route_id}")

    def _build_direct_transfer(self, intent: ParsedIntent, payment: ResolvedPayment) -> TransactionData:
        chain_id = resolve_chain_id(intent.from_chain)
        token_address = resolve_token_address(intent.from_token, chain_id) if chain_id else None
        if token_address is None:
            raise UnsupportedToken(intent.from_token, intent.from_chain)

        amount = to_base_units(intent.amount, resolve_decimals(intent.from_token))
        return TransactionData(
            to=Web3.to_checksum_address(token_address),
            data=encode_transfer(payment.recipient, amount),
            value="0",
            chain_id=chain_id,
            route_type=RouteType.STANDARD,
            provider="Direct Transfer",
        )
