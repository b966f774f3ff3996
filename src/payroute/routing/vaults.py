"""Atomic bridge-then-deposit routes.

Each router builds a LI.FI Contract Calls quote whose destination call deposits
the bridged funds into a contract on Base:

- YieldRouter:      any token -> USDC -> MEVProtectedVaultRouter.lifiCallback -> vault
- RestakingRouter:  any token -> WETH -> RestakingRouter.depositToRestaking -> ezETH
- MultiVaultRouter: any token -> USDC -> deposit() into several ERC-4626 vaults

Routers return VaultRouteResult or VaultRouteError and never raise for provider
failures. When the atomic path fails they can fall back to a plain transfer or
bridge quote; that downgrade is gated by settings.allow_degraded_fallback.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional, Sequence, Union

from eth_abi import encode
from web3 import Web3

from payroute.config import Settings, get_settings
from payroute.errors import ProviderError, ValidationError
from payroute.routing.base import RouteOption, RouteParams, RouteType
from payroute.routing.erc20 import function_selector
from payroute.routing.lifi import (
    PROVIDER_NAME as LIFI_PROVIDER_NAME,
    ContractCall,
    ContractCallRouteParams,
    LiFiRouter,
    format_usd,
    gas_cost_usd,
    path_from_steps,
    quote_duration,
    resolve_route_chains,
)
from payroute.routing.strategies import (
    STRATEGIES,
    StrategyType,
    split_amount,
    validate_allocation,
)
from payroute.routing.tokens import (
    chain_name,
    is_stablecoin,
    is_zero_address,
    resolve_decimals,
    resolve_token_address,
    to_base_units,
)

logger = logging.getLogger(__name__)

# lifiCallback(address vault, address recipient, uint256 minShares)
LIFI_CALLBACK_SELECTOR = "0x5cd7911a"
DEPOSIT_TO_RESTAKING_SELECTOR = function_selector("depositToRestaking(address,uint256)")
ERC4626_DEPOSIT_SELECTOR = function_selector("deposit(uint256,address)")

USDC_DECIMALS = 6
VAULT_SHARE_DECIMALS = 18
WETH_DECIMALS = 18


@dataclass(frozen=True)
class VaultRouteResult:
    route: RouteOption
    quote: dict
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class VaultRouteError:
    error: str

    @property
    def ok(self) -> bool:
        return False


VaultRouteOutcome = Union[VaultRouteResult, VaultRouteError]
Attempt = Callable[[], Awaitable[VaultRouteOutcome]]


async def first_success(attempts: Sequence[Attempt], label: str = "vault route") -> VaultRouteOutcome:
    """Run attempts in order until one yields a route.

    Every attempt after the first is a downgrade and is logged as such.
    Returns a VaultRouteError joining all failure messages when none succeed.
    """
    errors = []
    for index, attempt in enumerate(attempts):
        outcome = await attempt()
        if isinstance(outcome, VaultRouteResult):
            if index > 0:
                logger.warning(
                    f"{label}: preferred path failed ({'; '.join(errors)}), "
                    f"degraded to {outcome.route.id} via {outcome.route.provider}"
                )
                return VaultRouteResult(outcome.route, outcome.quote, degraded=True)
            return outcome
        errors.append(outcome.error)
        logger.info(f"{label} attempt {index + 1}/{len(attempts)} failed: {outcome.error}")

    if not errors:
        return VaultRouteError(f"No {label} available")
    return VaultRouteError("; ".join(errors))


@dataclass(frozen=True)
class VaultRouteParams:
    from_address: str
    from_chain: str
    from_token: str
    amount: str
    recipient: str
    vault: Optional[str] = None
    slippage: Optional[float] = None


@dataclass(frozen=True)
class VaultAllocation:
    vault: str
    percentage: int


@dataclass(frozen=True)
class MultiVaultRouteParams:
    from_address: str
    from_chain: str
    from_token: str
    amount: str
    recipient: str
    allocations: tuple[VaultAllocation, ...]
    slippage: Optional[float] = None


def encode_lifi_callback(vault: str, recipient: str, min_shares: int) -> str:
    args = encode(
        ["address", "address", "uint256"],
        [Web3.to_checksum_address(vault), Web3.to_checksum_address(recipient), min_shares],
    )
    return LIFI_CALLBACK_SELECTOR + args.hex()


def encode_deposit_to_restaking(recipient: str, amount: int) -> str:
    args = encode(["address", "uint256"], [Web3.to_checksum_address(recipient), amount])
    return DEPOSIT_TO_RESTAKING_SELECTOR + args.hex()


def encode_vault_deposit(assets: int, receiver: str) -> str:
    args = encode(["uint256", "address"], [assets, Web3.to_checksum_address(receiver)])
    return ERC4626_DEPOSIT_SELECTOR + args.hex()


def rescale(amount: int, from_decimals: int, to_decimals: int) -> int:
    if to_decimals >= from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


def is_vault_configured(vault: Optional[str]) -> bool:
    return bool(vault) and Web3.is_address(vault) and not is_zero_address(vault)


class VaultRouter:
    """Shared validation and quoting plumbing for the deposit routers."""

    label = "vault route"

    def __init__(self, lifi: LiFiRouter, settings: Optional[Settings] = None):
        self.lifi = lifi
        self.settings = settings or get_settings()

    def validate_common(self, from_token: str, from_chain: str, amount: str, recipient: str) -> Optional[str]:
        """Error message for a missing or malformed common field, None when valid."""
        if not recipient:
            return "Recipient is required"
        if not Web3.is_address(recipient):
            return f"Invalid recipient address: {recipient}"
        if not from_token:
            return "fromToken is required"
        if not amount:
            return "amount is required"
        try:
            if Decimal(amount) <= 0:
                return f"amount must be positive: {amount}"
        except InvalidOperation:
            return f"amount is not a decimal number: {amount}"

        from_chain_id, _ = resolve_route_chains(from_chain, None)
        if resolve_token_address(from_token, from_chain_id) is None:
            return f"Source token not supported: {from_token}"
        return None

    def fallback_allowed(self) -> bool:
        return self.settings.allow_degraded_fallback

    async def _contract_call_attempt(self, params: ContractCallRouteParams) -> VaultRouteOutcome:
        try:
            request = self.lifi.build_contract_calls_request(params)
            quote = await self.lifi.fetch_quote(request)
        except (ProviderError, ValidationError) as e:
            logger.error(f"{self.label} contract call quote failed: {e}")
            return VaultRouteError(str(e) or f"Failed to find {self.label}")
        return VaultRouteResult(self.lifi.contract_call_route(params, quote), quote)

    async def _standard_attempt(
        self,
        params: RouteParams,
        route_id: str,
        path_template: str,
        default_path: str,
    ) -> VaultRouteOutcome:
        try:
            request = self.lifi.build_standard_request(params)
            quote = await self.lifi.fetch_quote(request)
        except (ProviderError, ValidationError) as e:
            logger.error(f"{self.label} fallback quote failed: {e}")
            return VaultRouteError(str(e) or f"Failed to find {self.label}")

        path = path_from_steps(quote.get("includedSteps") or [], default_path)
        route = RouteOption(
            id=route_id,
            path=path_template.format(path=path),
            fee=format_usd(gas_cost_usd(quote)),
            estimated_time=quote_duration(quote, "~3 min"),
            provider=LIFI_PROVIDER_NAME,
            route_type=RouteType.STANDARD,
        )
        return VaultRouteResult(route, quote)


class YieldRouter(VaultRouter):
    """Bridge to USDC on Base and deposit into the receiver's vault."""

    label = "yield route"

    async def get_quote(self, params: VaultRouteParams) -> VaultRouteOutcome:
        error = self.validate_common(params.from_token, params.from_chain, params.amount, params.recipient)
        if error:
            return VaultRouteError(error)
        if not is_vault_configured(params.vault):
            return VaultRouteError("No vault configured for recipient")

        attempts: list[Attempt] = [lambda: self._mev_protected(params)]
        if self.fallback_allowed():
            attempts.append(lambda: self._direct_transfer(params))
        return await first_success(attempts, self.label)

    def _min_shares(self, params: VaultRouteParams, slippage: float) -> tuple[int, int]:
        """(USDC amount, min vault shares) assuming shares track assets 1:1."""
        amount_wei = to_base_units(params.amount, resolve_decimals(params.from_token))
        usdc_amount = rescale(amount_wei, resolve_decimals(params.from_token), USDC_DECIMALS)
        slippage_bps = int(slippage * 10000)
        expected_shares = usdc_amount * 10 ** (VAULT_SHARE_DECIMALS - USDC_DECIMALS)
        min_shares = expected_shares - expected_shares * slippage_bps // 10000
        return usdc_amount, min_shares

    async def _mev_protected(self, params: VaultRouteParams) -> VaultRouteOutcome:
        strategy = STRATEGIES[StrategyType.YIELD]
        slippage = params.slippage or self.settings.default_slippage
        _usdc_amount, min_shares = self._min_shares(params, slippage)

        recipient = Web3.to_checksum_address(params.recipient)
        call = ContractCall(
            from_amount="0",  # full received amount
            from_token_address=strategy.dest_token_address,
            to_contract_address=self.settings.mev_protected_router_address,
            to_contract_call_data=encode_lifi_callback(params.vault, recipient, min_shares),
            to_contract_gas_limit=strategy.gas_limit,
        )
        return await self._contract_call_attempt(
            ContractCallRouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                to_chain=chain_name(strategy.dest_chain_id),
                from_token=params.from_token,
                to_token=strategy.dest_token,
                contract_calls=(call,),
                from_amount=params.amount,
                to_fallback_address=recipient,
                slippage=slippage,
                id="mev-protected-yield-0",
                provider="LI.FI + MEVProtectedVaultRouter",
                path_suffix="MEV-Protected Vault Deposit",
                default_duration="~5 min",
            )
        )

    async def _direct_transfer(self, params: VaultRouteParams) -> VaultRouteOutcome:
        strategy = STRATEGIES[StrategyType.YIELD]
        return await self._standard_attempt(
            RouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                to_chain=chain_name(strategy.dest_chain_id),
                from_token=params.from_token,
                to_token=strategy.dest_token,
                amount=params.amount,
                slippage=params.slippage,
                to_address=Web3.to_checksum_address(params.recipient),
            ),
            route_id="yield-route-0",
            path_template="YieldRoute: {path} -> Recipient",
            default_path=f"{params.from_token} -> {strategy.dest_token}",
        )


class RestakingRouter(VaultRouter):
    """Bridge to WETH on Base and restake through Renzo."""

    label = "restaking route"

    @property
    def is_deployed(self) -> bool:
        return not is_zero_address(self.settings.restaking_router_address)

    async def get_quote(self, params: VaultRouteParams) -> VaultRouteOutcome:
        error = self.validate_common(params.from_token, params.from_chain, params.amount, params.recipient)
        if error:
            return VaultRouteError(error)

        attempts: list[Attempt] = []
        if self.is_deployed:
            attempts.append(lambda: self._atomic(params))
        else:
            logger.warning("Restaking router not deployed (zero address)")
        if self.fallback_allowed():
            attempts.append(lambda: self._simple_bridge(params))
        if not attempts:
            return VaultRouteError("Restaking router not deployed and degraded fallback disabled")

        outcome = await first_success(attempts, self.label)
        if isinstance(outcome, VaultRouteResult) and not self.is_deployed:
            # The plain bridge was the only attempt, still a downgrade
            return VaultRouteResult(outcome.route, outcome.quote, degraded=True)
        return outcome

    def _bridge_params(self, params: VaultRouteParams) -> RouteParams:
        strategy = STRATEGIES[StrategyType.RESTAKING]
        return RouteParams(
            from_address=params.from_address,
            from_chain=params.from_chain,
            to_chain=chain_name(strategy.dest_chain_id),
            from_token=params.from_token,
            to_token=strategy.dest_token,
            amount=params.amount,
            slippage=params.slippage or self.settings.restaking_slippage,
            to_address=Web3.to_checksum_address(params.recipient),
        )

    async def _expected_weth(self, params: VaultRouteParams) -> int:
        """WETH (wei) the payer's amount buys on Base, from a plain bridge quote."""
        if params.from_token.upper() == "WETH":
            return to_base_units(params.amount, WETH_DECIMALS)
        quote = await self.lifi.fetch_quote(self.lifi.build_standard_request(self._bridge_params(params)))
        estimate = quote.get("estimate") or {}
        amount = estimate.get("toAmountMin") or estimate.get("toAmount")
        if not amount:
            raise ProviderError("Bridge quote has no destination amount estimate")
        return int(amount)

    async def _atomic(self, params: VaultRouteParams) -> VaultRouteOutcome:
        strategy = STRATEGIES[StrategyType.RESTAKING]
        try:
            weth_amount = await self._expected_weth(params)
        except (ProviderError, ValidationError) as e:
            return VaultRouteError(str(e) or "Failed to estimate WETH amount")

        recipient = Web3.to_checksum_address(params.recipient)
        call = ContractCall(
            from_amount=str(weth_amount),
            from_token_address=strategy.dest_token_address,
            to_contract_address=self.settings.restaking_router_address,
            to_contract_call_data=encode_deposit_to_restaking(recipient, weth_amount),
            to_contract_gas_limit=strategy.gas_limit,
        )
        return await self._contract_call_attempt(
            ContractCallRouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                to_chain=chain_name(strategy.dest_chain_id),
                from_token=params.from_token,
                to_token=strategy.dest_token,
                contract_calls=(call,),
                to_amount=weth_amount,
                to_fallback_address=recipient,
                slippage=params.slippage or self.settings.restaking_slippage,
                id="restaking-route-0",
                provider="LI.FI + Renzo",
                path_suffix=f"Renzo -> {strategy.output_token}",
                default_duration="~5 min",
            )
        )

    async def _simple_bridge(self, params: VaultRouteParams) -> VaultRouteOutcome:
        return await self._standard_attempt(
            self._bridge_params(params),
            route_id="restaking-route-0",
            path_template="{path} -> Ready for Renzo",
            default_path=f"{params.from_token} -> WETH",
        )


class MultiVaultRouter(VaultRouter):
    """Split one payment across several ERC-4626 vaults in a single quote."""

    label = "multi-vault route"

    def __init__(
        self,
        lifi: LiFiRouter,
        settings: Optional[Settings] = None,
        yield_router: Optional[YieldRouter] = None,
    ):
        super().__init__(lifi, settings)
        self.yield_router = yield_router or YieldRouter(lifi, self.settings)

    async def get_quote(self, params: MultiVaultRouteParams) -> VaultRouteOutcome:
        """Quote the split deposit.

        Raises:
            InvalidAllocation: percentages do not sum to exactly 100
        """
        validate_allocation(a.percentage for a in params.allocations)

        error = self.validate_common(params.from_token, params.from_chain, params.amount, params.recipient)
        if error:
            return VaultRouteError(error)
        for allocation in params.allocations:
            if not is_vault_configured(allocation.vault):
                return VaultRouteError(f"Invalid vault address: {allocation.vault}")

        attempts: list[Attempt] = [lambda: self._split(params)]
        if self.fallback_allowed():
            attempts.append(lambda: self._single_strategy(params))
        return await first_success(attempts, self.label)

    async def _expected_usdc(self, params: MultiVaultRouteParams) -> int:
        """USDC (base units) the payer's amount delivers on Base.

        Stablecoins are taken at par; anything else is priced by a plain bridge quote.
        """
        decimals = resolve_decimals(params.from_token)
        if is_stablecoin(params.from_token):
            return rescale(to_base_units(params.amount, decimals), decimals, USDC_DECIMALS)

        strategy = STRATEGIES[StrategyType.YIELD]
        request = self.lifi.build_standard_request(
            RouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                to_chain=chain_name(strategy.dest_chain_id),
                from_token=params.from_token,
                to_token=strategy.dest_token,
                amount=params.amount,
                slippage=params.slippage,
                to_address=Web3.to_checksum_address(params.recipient),
            )
        )
        quote = await self.lifi.fetch_quote(request)
        estimate = quote.get("estimate") or {}
        amount = estimate.get("toAmountMin") or estimate.get("toAmount")
        if not amount:
            raise ProviderError("Bridge quote has no destination amount estimate")
        return int(amount)

    async def _split(self, params: MultiVaultRouteParams) -> VaultRouteOutcome:
        strategy = STRATEGIES[StrategyType.YIELD]
        try:
            usdc_total = await self._expected_usdc(params)
        except (ProviderError, ValidationError) as e:
            return VaultRouteError(str(e) or "Failed to estimate USDC amount")
        shares = split_amount(usdc_total, [a.percentage for a in params.allocations])

        recipient = Web3.to_checksum_address(params.recipient)
        calls = tuple(
            ContractCall(
                from_amount=str(share),
                from_token_address=strategy.dest_token_address,
                to_contract_address=Web3.to_checksum_address(allocation.vault),
                to_contract_call_data=encode_vault_deposit(share, recipient),
                to_contract_gas_limit=strategy.gas_limit,
            )
            for allocation, share in zip(params.allocations, shares)
        )
        return await self._contract_call_attempt(
            ContractCallRouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                to_chain=chain_name(strategy.dest_chain_id),
                from_token=params.from_token,
                to_token=strategy.dest_token,
                contract_calls=calls,
                to_amount=usdc_total,
                to_fallback_address=recipient,
                slippage=params.slippage,
                id="multi-vault-0",
                provider="LI.FI Contract Calls",
                path_suffix=f"Split across {len(calls)} vaults",
                default_duration="~5 min",
            )
        )

    async def _single_strategy(self, params: MultiVaultRouteParams) -> VaultRouteOutcome:
        primary = max(params.allocations, key=lambda a: a.percentage)
        return await self.yield_router.get_quote(
            VaultRouteParams(
                from_address=params.from_address,
                from_chain=params.from_chain,
                from_token=params.from_token,
                amount=params.amount,
                recipient=params.recipient,
                vault=primary.vault,
                slippage=params.slippage,
            )
        )
