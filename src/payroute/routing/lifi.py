"""LI.FI bridge/swap aggregator integration.

Three request shapes are supported:
- standard routes / quotes (plain transfer, swap or bridge)
- Composer quotes (destination token is a vault token; LI.FI detects the vault
  and builds a multi-step deposit plan)
- Contract Calls quotes (bridge, then run one or more destination-chain calls)

API docs: https://docs.li.fi/li.fi-api/li.fi-api
"""

import asyncio
import hashlib
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, ClassVar, Optional, TypeVar, Union

import httpx

from payroute.errors import (
    AggregatorError,
    ProviderError,
    QuoteTimeout,
    UnsupportedToken,
    UnsupportedVault,
    ValidationError,
)
from payroute.routing.base import (
    RouteOption,
    RouteParams,
    RouteProvider,
    RouteType,
    TransactionData,
    error_route,
)
from payroute.routing.cache import QuoteCache, make_cache_key
from payroute.routing.tokens import (
    ETHEREUM,
    is_vault_address,
    resolve_chain_id,
    resolve_decimals,
    resolve_token_address,
    resolve_vault_address,
    to_base_units,
)

logger = logging.getLogger(__name__)

LIFI_API = "https://li.quest/v1"
PROVIDER_NAME = "LI.FI"
COMPOSER_PROVIDER_NAME = "LI.FI Composer"
CONTRACT_CALLS_PROVIDER_NAME = "LI.FI Contract Calls"

# Spender for ERC-20 inputs of LI.FI transactions (same address on every EVM chain)
LIFI_DIAMOND_ADDRESS = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_SLIPPAGE = 0.005
MAX_STANDARD_ROUTES = 3

T = TypeVar("T")


# ----------------------------------------------------------------------
# Request shapes
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class StandardQuoteRequest:
    """Plain transfer / swap / bridge."""

    route_type: ClassVar[RouteType] = RouteType.STANDARD

    from_chain_id: int
    to_chain_id: int
    from_token_address: str
    to_token_address: str
    from_amount: int
    from_address: str
    to_address: Optional[str] = None
    slippage: float = DEFAULT_SLIPPAGE

    @property
    def cache_key(self) -> str:
        return make_cache_key(
            "std",
            self.from_chain_id,
            self.to_chain_id,
            self.from_token_address,
            self.to_token_address,
            self.from_amount,
            self.to_address,
            self.from_address,
            self.slippage,
        )


@dataclass(frozen=True)
class ComposerQuoteRequest:
    """Standard quote whose destination token is a vault token."""

    route_type: ClassVar[RouteType] = RouteType.COMPOSER

    from_chain_id: int
    to_chain_id: int
    from_token_address: str
    vault_token_address: str
    from_amount: int
    from_address: str
    vault_protocol: str
    slippage: float = DEFAULT_SLIPPAGE

    @property
    def cache_key(self) -> str:
        return make_cache_key(
            "composer",
            self.from_chain_id,
            self.to_chain_id,
            self.from_token_address,
            self.vault_token_address,
            self.from_amount,
            self.from_address,
            self.slippage,
        )


@dataclass(frozen=True)
class ContractCall:
    """One destination-chain call executed after the bridge lands."""

    from_amount: str
    from_token_address: str
    to_contract_address: str
    to_contract_call_data: str
    to_contract_gas_limit: str

    def to_json(self) -> dict:
        return {
            "fromAmount": self.from_amount,
            "fromTokenAddress": self.from_token_address,
            "toContractAddress": self.to_contract_address,
            "toContractCallData": self.to_contract_call_data,
            "toContractGasLimit": self.to_contract_gas_limit,
        }


@dataclass(frozen=True)
class ContractCallsQuoteRequest:
    """Bridge + arbitrary destination contract calls, executed atomically."""

    route_type: ClassVar[RouteType] = RouteType.CONTRACT_CALL

    from_chain_id: int
    to_chain_id: int
    from_token_address: str
    to_token_address: str
    from_address: str
    contract_calls: tuple[ContractCall, ...]
    to_amount: Optional[int] = None
    from_amount: Optional[int] = None
    to_fallback_address: Optional[str] = None
    slippage: float = DEFAULT_SLIPPAGE

    @property
    def cache_key(self) -> str:
        calls = hashlib.sha256(
            "|".join(
                f"{c.to_contract_address.lower()}:{c.from_amount}:{c.to_contract_call_data.lower()}"
                for c in self.contract_calls
            ).encode()
        ).hexdigest()[:16]
        return make_cache_key(
            "cc",
            self.from_chain_id,
            self.to_chain_id,
            self.from_token_address,
            self.to_token_address,
            self.from_amount,
            self.to_amount,
            self.from_address,
            self.to_fallback_address,
            self.slippage,
            calls,
        )


QuoteRequest = Union[StandardQuoteRequest, ComposerQuoteRequest, ContractCallsQuoteRequest]


@dataclass(frozen=True)
class ContractCallRouteParams:
    """Inputs for find_contract_call_routes."""

    from_address: str
    from_chain: str
    to_chain: str
    from_token: str
    to_token: str
    contract_calls: tuple[ContractCall, ...]
    to_amount: Optional[int] = None
    from_amount: Optional[str] = None
    to_fallback_address: Optional[str] = None
    slippage: Optional[float] = None
    id: str = "lifi-contract-call-0"
    provider: str = CONTRACT_CALLS_PROVIDER_NAME
    path_suffix: Optional[str] = None
    default_duration: str = "~3 min"


# ----------------------------------------------------------------------
# HTTP client
# ----------------------------------------------------------------------


def extract_error_detail(error: BaseException, default: str = "Failed to find routes") -> str:
    """Best-effort human readable message from an aggregator failure."""
    message = str(error)
    if message:
        return message
    return default


class LiFiClient:
    """Thin async client for the LI.FI REST API."""

    def __init__(
        self,
        base_url: str = LIFI_API,
        integrator: str = "payroute",
        api_key: Optional[str] = None,
        deny_exchanges: Optional[list[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.integrator = integrator
        self.api_key = api_key
        self.deny_exchanges = deny_exchanges or []
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-lifi-api-key"] = self.api_key
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(
                method, url, headers=self._get_headers(), **kwargs
            )
        except httpx.HTTPError as e:
            raise AggregatorError(f"LI.FI request failed: {type(e).__name__}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code != 200:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"LI.FI API error: {response.status_code} - {message or response.text}")
            raise AggregatorError(message or f"LI.FI API error: {response.status_code}")

        if not isinstance(data, dict):
            raise AggregatorError("Malformed LI.FI response")
        return data

    async def get_routes(self, request: StandardQuoteRequest) -> list[dict]:
        """POST /advanced/routes - ranked candidate routes (no calldata)."""
        body = {
            "fromChainId": request.from_chain_id,
            "toChainId": request.to_chain_id,
            "fromTokenAddress": request.from_token_address,
            "toTokenAddress": request.to_token_address,
            "fromAmount": str(request.from_amount),
            "fromAddress": request.from_address.lower(),
            "options": {
                "slippage": request.slippage,
                "integrator": self.integrator,
                "exchanges": {"deny": self.deny_exchanges},
            },
        }
        if request.to_address:
            body["toAddress"] = request.to_address
        data = await self._request("POST", "/advanced/routes", json=body)
        routes = data.get("routes")
        if not isinstance(routes, list):
            raise AggregatorError("Malformed LI.FI routes response")
        return routes

    async def get_quote(self, request: Union[StandardQuoteRequest, ComposerQuoteRequest]) -> dict:
        """GET /quote - single best quote with a transactionRequest."""
        if isinstance(request, ComposerQuoteRequest):
            to_token = request.vault_token_address
            to_address = request.from_address
        else:
            to_token = request.to_token_address
            to_address = request.to_address or request.from_address

        params = {
            "fromChain": request.from_chain_id,
            "toChain": request.to_chain_id,
            "fromToken": request.from_token_address,
            "toToken": to_token,
            "fromAmount": str(request.from_amount),
            "fromAddress": request.from_address.lower(),
            "toAddress": to_address,
            "slippage": request.slippage,
            "integrator": self.integrator,
        }
        if self.deny_exchanges:
            params["denyExchanges"] = ",".join(self.deny_exchanges)
        return await self._request("GET", "/quote", params=params)

    async def get_contract_calls_quote(self, request: ContractCallsQuoteRequest) -> dict:
        """POST /quote/contractCalls - bridge then call destination contracts."""
        body: dict[str, Any] = {
            "fromChain": request.from_chain_id,
            "fromToken": request.from_token_address,
            "fromAddress": request.from_address,
            "toChain": request.to_chain_id,
            "toToken": request.to_token_address,
            "contractCalls": [call.to_json() for call in request.contract_calls],
            "slippage": request.slippage,
            "integrator": self.integrator,
            "denyExchanges": self.deny_exchanges,
        }
        if request.to_amount is not None:
            body["toAmount"] = str(request.to_amount)
        if request.from_amount is not None:
            body["fromAmount"] = str(request.from_amount)
        if request.to_fallback_address:
            body["toFallbackAddress"] = request.to_fallback_address
        return await self._request("POST", "/quote/contractCalls", json=body)

    async def fetch(self, request: QuoteRequest) -> dict:
        """Dispatch a request to the endpoint matching its shape."""
        if isinstance(request, ContractCallsQuoteRequest):
            return await self.get_contract_calls_quote(request)
        return await self.get_quote(request)

    async def aclose(self) -> None:
        await self._client.aclose()


# ----------------------------------------------------------------------
# Response mapping helpers
# ----------------------------------------------------------------------


def _step_name(step: dict) -> str:
    tool = step.get("toolDetails") or {}
    return tool.get("name") or step.get("type") or step.get("tool") or "step"


def path_from_steps(steps: list[dict], fallback: str) -> str:
    if not steps:
        return fallback
    return " -> ".join(_step_name(s) for s in steps)


def gas_cost_usd(quote: dict) -> Decimal:
    """Sum of gasCosts[].amountUSD from a quote estimate."""
    costs = (quote.get("estimate") or {}).get("gasCosts") or []
    total = Decimal("0")
    for cost in costs:
        try:
            total += Decimal(str(cost.get("amountUSD") or "0"))
        except ArithmeticError:
            continue
    return total


def format_usd(value: Union[Decimal, float, str]) -> str:
    return f"${Decimal(str(value)):.2f}"


def format_minutes(seconds: Union[int, float]) -> str:
    return f"{math.ceil(seconds / 60)} min"


def quote_duration(quote: dict, default: str) -> str:
    duration = (quote.get("estimate") or {}).get("executionDuration")
    if not duration:
        return default
    return format_minutes(duration)


def _to_decimal_string(value: Any) -> str:
    if value is None or value == "":
        return "0"
    if isinstance(value, str) and value.startswith("0x"):
        return str(int(value, 16))
    return str(int(value))


def extract_transaction(
    quote: dict,
    route_type: RouteType,
    provider: str,
    fallback_chain_id: int,
) -> TransactionData:
    """Pull the signable transaction out of a raw aggregator quote."""
    tx = quote.get("transactionRequest") or {}
    if not tx.get("to") or not tx.get("data"):
        raise AggregatorError("No transaction data returned from LI.FI quote")

    gas_limit = tx.get("gasLimit")
    return TransactionData(
        to=tx["to"],
        data=tx["data"],
        value=_to_decimal_string(tx.get("value")),
        chain_id=int(tx.get("chainId") or fallback_chain_id),
        gas_limit=_to_decimal_string(gas_limit) if gas_limit else None,
        route_type=route_type,
        provider=provider,
    )


# ----------------------------------------------------------------------
# Router
# ----------------------------------------------------------------------


def resolve_route_chains(from_chain: str, to_chain: Optional[str]) -> tuple[int, int]:
    """Chain ids for a request; unknown source defaults to Ethereum, destination to source."""
    from_chain_id = resolve_chain_id(from_chain) or ETHEREUM
    to_chain_id = resolve_chain_id(to_chain) or from_chain_id
    return from_chain_id, to_chain_id


def _token_address(symbol_or_address: str, chain_id: int) -> str:
    # Direct addresses are accepted (e.g. vault addresses for yield routing)
    if symbol_or_address.startswith("0x"):
        return symbol_or_address
    address = resolve_token_address(symbol_or_address, chain_id)
    if address is None:
        raise UnsupportedToken(symbol_or_address, chain_id)
    return address


class LiFiRouter(RouteProvider):
    """Bridge aggregation router backed by LI.FI.

    Every public finder follows the same shape: resolve addresses, compute the
    amount in base units, check the cache, call LI.FI raced against a timeout,
    map the response into RouteOptions, cache and return. Failures come back
    as a single error route and are never raised.
    """

    def __init__(
        self,
        client: LiFiClient,
        cache: Optional[QuoteCache] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        default_slippage: float = DEFAULT_SLIPPAGE,
    ):
        self.client = client
        self.cache = cache or QuoteCache()
        self.timeout_seconds = timeout_seconds
        self.default_slippage = default_slippage

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    async def _with_timeout(self, awaitable: Awaitable[T], label: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise QuoteTimeout(f"{label} timed out") from None

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    def build_standard_request(self, params: RouteParams) -> StandardQuoteRequest:
        from_chain_id, to_chain_id = resolve_route_chains(params.from_chain, params.to_chain)
        from_token_address = _token_address(params.from_token, from_chain_id)
        to_token_address = _token_address(params.to_token, to_chain_id)
        decimals = resolve_decimals(params.from_token)

        return StandardQuoteRequest(
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token_address=from_token_address,
            to_token_address=to_token_address,
            from_amount=to_base_units(params.amount, decimals),
            from_address=params.from_address,
            to_address=params.to_address,
            slippage=params.slippage or self.default_slippage,
        )

    def build_composer_request(self, params: RouteParams, vault_protocol: str) -> ComposerQuoteRequest:
        from_chain_id, to_chain_id = resolve_route_chains(params.from_chain, params.to_chain)
        from_token_address = resolve_token_address(params.from_token, from_chain_id)
        if from_token_address is None:
            raise UnsupportedToken(params.from_token, params.from_chain)

        vault_address = resolve_vault_address(vault_protocol, params.from_token, to_chain_id)
        if vault_address is None:
            raise UnsupportedVault(vault_protocol, params.from_token, params.to_chain or params.from_chain)

        return ComposerQuoteRequest(
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token_address=from_token_address,
            vault_token_address=vault_address,
            from_amount=to_base_units(params.amount, resolve_decimals(params.from_token)),
            from_address=params.from_address,
            vault_protocol=vault_protocol.lower(),
            slippage=params.slippage or self.default_slippage,
        )

    def build_contract_calls_request(self, params: ContractCallRouteParams) -> ContractCallsQuoteRequest:
        from_chain_id, to_chain_id = resolve_route_chains(params.from_chain, params.to_chain)
        from_token_address = _token_address(params.from_token, from_chain_id)
        to_token_address = _token_address(params.to_token, to_chain_id)
        from_amount = None
        if params.from_amount is not None:
            from_amount = to_base_units(params.from_amount, resolve_decimals(params.from_token))

        return ContractCallsQuoteRequest(
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token_address=from_token_address,
            to_token_address=to_token_address,
            from_address=params.from_address,
            contract_calls=tuple(params.contract_calls),
            to_amount=params.to_amount,
            from_amount=from_amount,
            to_fallback_address=params.to_fallback_address,
            slippage=params.slippage or self.default_slippage,
        )

    # ------------------------------------------------------------------
    # Raw quotes
    # ------------------------------------------------------------------

    async def fetch_quote(self, request: QuoteRequest) -> dict:
        """Raw aggregator quote for a request, cached under the request's key.

        Raises:
            QuoteTimeout: LI.FI did not answer in time
            AggregatorError: LI.FI returned an error
        """
        cached = await self.cache.get(request.cache_key)
        if cached is not None:
            return cached

        logger.debug(f"Requesting {request.route_type.value} quote from LI.FI: {request.cache_key}")
        quote = await self._with_timeout(
            self.client.fetch(request),
            f"LI.FI {request.route_type.value} quote request",
        )
        await self.cache.set(request.cache_key, quote)
        return quote

    async def build_transaction(
        self,
        request: QuoteRequest,
        provider: Optional[str] = None,
    ) -> TransactionData:
        """Turn a request into signable transaction data."""
        quote = await self.fetch_quote(request)
        route_type = request.route_type
        if isinstance(request, StandardQuoteRequest) and is_vault_address(request.to_token_address):
            # Plain swap straight into a vault token resolves to a Composer route
            route_type = RouteType.COMPOSER
        return extract_transaction(
            quote,
            route_type=route_type,
            provider=provider or PROVIDER_NAME,
            fallback_chain_id=request.from_chain_id,
        )

    # ------------------------------------------------------------------
    # Route finders
    # ------------------------------------------------------------------

    async def find_routes(self, params: RouteParams) -> list[RouteOption]:
        return await self.find_standard_routes(params)

    async def find_standard_routes(self, params: RouteParams) -> list[RouteOption]:
        """Up to three ranked plain transfer/swap/bridge candidates."""
        try:
            request = self.build_standard_request(params)
        except ValidationError as e:
            return error_route(str(e))

        routes_key = f"routes:{request.cache_key}"
        cached = await self.cache.get(routes_key)
        if cached is not None:
            return cached

        try:
            raw_routes = await self._with_timeout(
                self.client.get_routes(request), "LI.FI route request"
            )
        except ProviderError as e:
            logger.error(f"LI.FI route error: {e}")
            return error_route(extract_error_detail(e))

        routes = []
        for i, route in enumerate(raw_routes[:MAX_STANDARD_ROUTES]):
            steps = route.get("steps") or []
            duration = sum((s.get("estimate") or {}).get("executionDuration") or 0 for s in steps)
            routes.append(
                RouteOption(
                    id=f"lifi-route-{i}",
                    path=path_from_steps(steps, f"{params.from_token} -> {params.to_token}"),
                    fee=format_usd(route.get("gasCostUSD") or "0"),
                    estimated_time=format_minutes(duration),
                    provider=PROVIDER_NAME,
                    route_type=RouteType.STANDARD,
                )
            )

        logger.info(
            f"LI.FI returned {len(routes)} route(s) for {params.amount} "
            f"{params.from_token}@{params.from_chain} -> {params.to_token}@{params.to_chain}"
        )
        await self.cache.set(routes_key, routes)
        return routes

    async def find_composer_routes(self, params: RouteParams, vault_protocol: str) -> list[RouteOption]:
        """Single Composer candidate depositing into the protocol's vault."""
        try:
            request = self.build_composer_request(params, vault_protocol)
        except ValidationError as e:
            return error_route(str(e), route_type=RouteType.COMPOSER)

        try:
            quote = await self.fetch_quote(request)
        except ProviderError as e:
            logger.error(f"LI.FI Composer route error: {e}")
            return error_route(extract_error_detail(e), route_type=RouteType.COMPOSER)

        path = path_from_steps(
            quote.get("includedSteps") or [],
            f"{params.from_token} -> {vault_protocol} vault",
        )
        return [
            RouteOption(
                id="lifi-composer-0",
                path=f"Composer: {path}",
                fee=format_usd(gas_cost_usd(quote)),
                estimated_time=quote_duration(quote, "~2 min"),
                provider=COMPOSER_PROVIDER_NAME,
                route_type=RouteType.COMPOSER,
            )
        ]

    async def find_contract_call_routes(self, params: ContractCallRouteParams) -> list[RouteOption]:
        """Single candidate that bridges and runs destination contract calls."""
        if not params.contract_calls:
            return error_route("No contract calls provided", route_type=RouteType.CONTRACT_CALL)

        try:
            request = self.build_contract_calls_request(params)
        except ValidationError as e:
            return error_route(str(e), route_type=RouteType.CONTRACT_CALL)

        try:
            quote = await self.fetch_quote(request)
        except ProviderError as e:
            logger.error(f"LI.FI contract call route error: {e}")
            return error_route(extract_error_detail(e), route_type=RouteType.CONTRACT_CALL)

        return [self.contract_call_route(params, quote)]

    @staticmethod
    def contract_call_route(params: ContractCallRouteParams, quote: dict) -> RouteOption:
        path = path_from_steps(
            quote.get("includedSteps") or [],
            f"{params.from_token} -> contract call",
        )
        if params.path_suffix:
            path = f"{path} -> {params.path_suffix}"
        else:
            path = f"Contract Call: {path}"
        return RouteOption(
            id=params.id,
            path=path,
            fee=format_usd(gas_cost_usd(quote)),
            estimated_time=quote_duration(quote, params.default_duration),
            provider=params.provider,
            route_type=RouteType.CONTRACT_CALL,
        )
