"""Same-chain swaps through a Uniswap v4 dynamic-fee hook.

The pool is never looked up on-chain: its PoolId is derived from the PoolKey
exactly like PoolIdLibrary.toId() does in the pool manager. Swaps go through
the Universal Router, which pulls tokens via Permit2, so a payer needs two
allowances before the swap can be built:

    token  --approve(permit2)-->  Permit2  --approve(router)-->  UniversalRouter
"""

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Union

from eth_abi import encode
from web3 import Web3

from payroute.config import Settings, get_settings
from payroute.errors import NoRouteFound, UnsupportedToken, ValidationError
from payroute.routing.base import (
    RouteOption,
    RouteParams,
    RouteProvider,
    RouteType,
    TransactionData,
)
from payroute.routing.chain_reader import ChainReader, JsonRpcChainReader
from payroute.routing.erc20 import (
    MAX_UINT160,
    MAX_UINT256,
    MAX_UINT48,
    PERMIT2_ADDRESS,
    decode_permit2_allowance,
    decode_uint256,
    encode_allowance,
    encode_approve,
    encode_permit2_allowance,
    encode_permit2_approve,
    function_selector,
)
from payroute.routing.tokens import (
    ARBITRUM,
    BASE,
    BLUECHIP,
    ETHEREUM,
    OPTIMISM,
    STABLE,
    TOKENS,
    chain_name,
    is_zero_address,
    resolve_chain_id,
    to_base_units,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Uniswap v4 Hook"
TOKEN_APPROVAL_PROVIDER = "Token Approval"
PERMIT2_APPROVAL_PROVIDER = "Permit2 Approval"

# LPFeeLibrary.DYNAMIC_FEE_FLAG: fee is managed by the hook
DYNAMIC_FEE_FLAG = 0x800000

# Minimum pool liquidity (base units) required to recommend the hook route
MIN_POOL_LIQUIDITY = 1000

SWAP_DEADLINE_SECONDS = 1800

# Universal Router command
V4_SWAP = 0x10

# v4-periphery Actions
SWAP_EXACT_IN_SINGLE = 0x06
SETTLE_ALL = 0x0C
TAKE_ALL = 0x0F

EXECUTE_SELECTOR = function_selector("execute(bytes,bytes[],uint256)")

POOL_KEY_TYPE = "(address,address,uint24,int24,address)"
EXACT_INPUT_SINGLE_TYPE = f"({POOL_KEY_TYPE},bool,uint128,uint128,bytes)"

HOOK_GAS_ESTIMATE_USD = Decimal("0.05")

# (PoolManager, UniversalRouter) per chain
V4_DEPLOYMENTS: dict[int, tuple[str, str]] = {
    ETHEREUM: (
        "0x000000000004444c5dc75cb358380d2e3de08a90",
        "0x66a9893cc07d91d95644aedd05d03f95e1dba8af",
    ),
    BASE: (
        "0x498581ff718922c3f8e6a244956af099b2652b2b",
        "0x6ff5693b99212da76ad316178a184ab56d299b43",
    ),
    ARBITRUM: (
        "0x360e68faccca8ca495c1b759fd9eee466db9fb32",
        "0xa51afafe0263b40edaef0df8781ea9aa03e381a3",
    ),
    OPTIMISM: (
        "0x9a13f98cb987694c9f086b1f5eb990eea8264ec3",
        "0x851116d9223fabed8e56c0e6b8ad0c31d98b3507",
    ),
}


class ApprovalState(str, Enum):
    """Where a payer stands in the token -> Permit2 -> router approval chain."""

    NEEDS_TOKEN_APPROVAL = "needs-token-approval"
    NEEDS_GATEWAY_APPROVAL = "needs-gateway-approval"
    READY = "ready"


@dataclass(frozen=True)
class PairTier:
    """Fee / tick spacing / slippage defaults for a pair risk class."""

    name: str
    fee: int  # pips (hundredths of a bip)
    tick_spacing: int
    slippage: int  # per mille


STABLE_TIER = PairTier("stable", fee=100, tick_spacing=1, slippage=3)
BLUECHIP_TIER = PairTier("bluechip", fee=500, tick_spacing=60, slippage=20)
MIXED_TIER = PairTier("mixed", fee=3000, tick_spacing=60, slippage=20)


def classify_pair(category_a: str, category_b: str) -> PairTier:
    if category_a == STABLE and category_b == STABLE:
        return STABLE_TIER
    if category_a == BLUECHIP and category_b == BLUECHIP:
        return BLUECHIP_TIER
    return MIXED_TIER


@dataclass(frozen=True)
class PoolKey:
    """Uniswap v4 PoolKey. currency0 < currency1 by numeric address value."""

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    def __post_init__(self):
        if int(self.currency0, 16) >= int(self.currency1, 16):
            raise ValueError("PoolKey currencies must be sorted: currency0 < currency1")

    @classmethod
    def from_tokens(
        cls,
        token_a: str,
        token_b: str,
        tick_spacing: int,
        hooks: str,
        fee: int = DYNAMIC_FEE_FLAG,
    ) -> "PoolKey":
        currency0, currency1 = sorted((token_a, token_b), key=lambda a: int(a, 16))
        return cls(currency0, currency1, fee, tick_spacing, hooks)

    def as_tuple(self) -> tuple:
        return (
            Web3.to_checksum_address(self.currency0),
            Web3.to_checksum_address(self.currency1),
            self.fee,
            self.tick_spacing,
            Web3.to_checksum_address(self.hooks),
        )


def compute_pool_id(pool_key: PoolKey) -> str:
    """keccak256(abi.encode(currency0, currency1, fee, tickSpacing, hooks))"""
    encoded = encode(
        ["address", "address", "uint24", "int24", "address"],
        list(pool_key.as_tuple()),
    )
    return "0x" + Web3.keccak(encoded).hex().removeprefix("0x")


@dataclass(frozen=True)
class HookToken:
    address: str
    decimals: int
    category: str


@dataclass(frozen=True)
class HookChainConfig:
    """Everything needed to route through the hook on one chain."""

    chain: str
    chain_id: int
    hook_address: str
    router_address: str
    pool_manager_address: str
    permit2_address: str = PERMIT2_ADDRESS
    tokens: dict[str, HookToken] = field(default_factory=dict)

    @property
    def is_deployed(self) -> bool:
        return not is_zero_address(self.hook_address)

    def token(self, symbol: Optional[str]) -> Optional[HookToken]:
        if not symbol:
            return None
        return self.tokens.get(symbol.upper())


def build_hook_chain_configs(settings: Settings) -> dict[int, HookChainConfig]:
    """Per-chain hook configuration from settings and the token registry."""
    configs = {}
    for chain_id, (pool_manager, router) in V4_DEPLOYMENTS.items():
        name = chain_name(chain_id)
        tokens = {
            symbol: HookToken(token.addresses[chain_id], token.decimals, token.category)
            for symbol, token in TOKENS.items()
            if chain_id in token.addresses
        }
        configs[chain_id] = HookChainConfig(
            chain=name,
            chain_id=chain_id,
            hook_address=settings.get_hook_address(name),
            router_address=router,
            pool_manager_address=pool_manager,
            tokens=tokens,
        )
    return configs


@dataclass(frozen=True)
class HookPool:
    """A resolved, applicable hook pool for a pair of tokens."""

    config: HookChainConfig
    token_in: HookToken
    token_out: HookToken
    tier: PairTier
    pool_key: PoolKey

    @property
    def pool_id(self) -> str:
        return compute_pool_id(self.pool_key)

    @property
    def zero_for_one(self) -> bool:
        return self.token_in.address.lower() == self.pool_key.currency0.lower()


def min_amount_out(
    amount_in: int,
    decimals_in: int,
    decimals_out: int,
    slippage: int,
    quoted_amount_out: Optional[int] = None,
) -> int:
    """expected_out * (1000 - slippage) // 1000.

    expected_out is the caller's quoted output when given, otherwise amount_in
    rescaled to the output token's decimals.
    """
    if quoted_amount_out is not None:
        expected = quoted_amount_out
    elif decimals_out >= decimals_in:
        expected = amount_in * 10 ** (decimals_out - decimals_in)
    else:
        expected = amount_in // 10 ** (decimals_in - decimals_out)
    return expected * (1000 - slippage) // 1000


def encode_v4_swap(pool: HookPool, amount_in: int, amount_out_minimum: int, deadline: int) -> str:
    """Universal Router execute() call running one exact-in single-pool swap."""
    actions = bytes([SWAP_EXACT_IN_SINGLE, SETTLE_ALL, TAKE_ALL])
    currency_in = Web3.to_checksum_address(pool.token_in.address)
    currency_out = Web3.to_checksum_address(pool.token_out.address)

    params = [
        encode(
            [EXACT_INPUT_SINGLE_TYPE],
            [(pool.pool_key.as_tuple(), pool.zero_for_one, amount_in, amount_out_minimum, b"")],
        ),
        encode(["address", "uint256"], [currency_in, amount_in]),
        encode(["address", "uint256"], [currency_out, amount_out_minimum]),
    ]
    v4_input = encode(["bytes", "bytes[]"], [actions, params])
    args = encode(["bytes", "bytes[]", "uint256"], [bytes([V4_SWAP]), [v4_input], deadline])
    return EXECUTE_SELECTOR + args.hex()


class V4HookRouter(RouteProvider):
    """Route provider for the dynamic-fee hook pools."""

    def __init__(
        self,
        chain_reader: Optional[ChainReader] = None,
        settings: Optional[Settings] = None,
        chains: Optional[dict[int, HookChainConfig]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.chains = chains if chains is not None else build_hook_chain_configs(self.settings)
        self._chain_reader = chain_reader
        self._clock = clock

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def chain_reader(self) -> ChainReader:
        if self._chain_reader is None:
            self._chain_reader = JsonRpcChainReader(self.settings)
        return self._chain_reader

    def get_chain_config(self, chain: Union[str, int, None]) -> Optional[HookChainConfig]:
        chain_id = resolve_chain_id(chain)
        if chain_id is None:
            return None
        return self.chains.get(chain_id)

    def is_deployed(self, chain: Union[str, int, None]) -> bool:
        config = self.get_chain_config(chain)
        return config is not None and config.is_deployed

    def resolve_pool(self, params: RouteParams) -> Optional[HookPool]:
        """The hook pool for these params, or None when the hook path does not apply."""
        from_chain = (params.from_chain or "ethereum").lower()
        if params.to_chain and params.to_chain.lower() != from_chain:
            return None

        config = self.get_chain_config(from_chain)
        if config is None or not config.is_deployed:
            return None

        token_in = config.token(params.from_token)
        token_out = config.token(params.to_token)
        if token_in is None or token_out is None:
            return None
        if is_zero_address(token_in.address) or is_zero_address(token_out.address):
            return None
        if token_in.address.lower() == token_out.address.lower():
            return None

        if params.pool_liquidity is not None and params.pool_liquidity < MIN_POOL_LIQUIDITY:
            return None

        tier = classify_pair(token_in.category, token_out.category)
        pool_key = PoolKey.from_tokens(
            token_in.address,
            token_out.address,
            tick_spacing=tier.tick_spacing,
            hooks=config.hook_address,
        )
        return HookPool(config, token_in, token_out, tier, pool_key)

    async def find_routes(self, params: RouteParams) -> list[RouteOption]:
        return await self.find_hook_routes(params)

    async def find_hook_routes(self, params: RouteParams) -> list[RouteOption]:
        """Zero or one hook candidate. Empty means the hook path is inapplicable."""
        pool = self.resolve_pool(params)
        if pool is None:
            return []

        fee = HOOK_GAS_ESTIMATE_USD
        if pool.token_in.category == STABLE:
            fee += Decimal(params.amount) * pool.tier.fee / 1_000_000

        pool_id = pool.pool_id
        logger.debug(
            f"Hook pool {pool_id} ({pool.tier.name}) for {params.from_token}/{params.to_token} "
            f"on {pool.config.chain}"
        )
        return [
            RouteOption(
                id=f"v4-{pool_id[:18]}",
                path=f"{params.from_token.upper()} -> {params.to_token.upper()} via v4 hook ({pool.tier.name})",
                fee=f"${fee:.2f}",
                estimated_time="~15s",
                provider=PROVIDER_NAME,
                route_type=RouteType.STANDARD,
            )
        ]

    # ------------------------------------------------------------------
    # Approval state machine
    # ------------------------------------------------------------------

    async def get_approval_state(
        self,
        chain: Union[str, int],
        token: str,
        owner: str,
        amount: int,
    ) -> ApprovalState:
        """Two live reads: ERC-20 allowance to Permit2, then Permit2 allowance to the router.

        Raises:
            ChainReadError: an RPC read failed
        """
        config = self.get_chain_config(chain)
        if config is None:
            raise ValidationError(f"No hook deployment for chain: {chain}")
        token_address = self._token_address(config, token)

        raw = await self.chain_reader.call(
            config.chain_id,
            token_address,
            encode_allowance(owner, config.permit2_address),
        )
        if decode_uint256(raw) < amount:
            return ApprovalState.NEEDS_TOKEN_APPROVAL

        raw = await self.chain_reader.call(
            config.chain_id,
            config.permit2_address,
            encode_permit2_allowance(owner, token_address, config.router_address),
        )
        permitted, expiration, _nonce = decode_permit2_allowance(raw)
        if permitted < amount or expiration <= int(self._clock()):
            return ApprovalState.NEEDS_GATEWAY_APPROVAL

        return ApprovalState.READY

    @staticmethod
    def _token_address(config: HookChainConfig, token: str) -> str:
        if token.startswith("0x"):
            return token
        hook_token = config.token(token)
        if hook_token is None:
            raise UnsupportedToken(token, config.chain)
        return hook_token.address

    def build_approval_transaction(
        self,
        state: ApprovalState,
        config: HookChainConfig,
        token_address: str,
    ) -> TransactionData:
        """The transaction that advances the payer out of a needs-* state."""
        if state == ApprovalState.NEEDS_TOKEN_APPROVAL:
            return TransactionData(
                to=Web3.to_checksum_address(token_address),
                data=encode_approve(config.permit2_address, MAX_UINT256),
                value="0",
                chain_id=config.chain_id,
                route_type=RouteType.STANDARD,
                provider=TOKEN_APPROVAL_PROVIDER,
            )
        if state == ApprovalState.NEEDS_GATEWAY_APPROVAL:
            return TransactionData(
                to=Web3.to_checksum_address(config.permit2_address),
                data=encode_permit2_approve(
                    token_address, config.router_address, MAX_UINT160, MAX_UINT48
                ),
                value="0",
                chain_id=config.chain_id,
                route_type=RouteType.STANDARD,
                provider=PERMIT2_APPROVAL_PROVIDER,
            )
        raise ValueError("No approval needed in state ready")

    # ------------------------------------------------------------------
    # Swap construction
    # ------------------------------------------------------------------

    def build_swap_transaction(
        self,
        pool: HookPool,
        amount_in: int,
        quoted_amount_out: Optional[int] = None,
    ) -> TransactionData:
        if quoted_amount_out is None and pool.tier is not STABLE_TIER:
            logger.warning(
                f"Building {pool.tier.name} hook swap without a quoted output; "
                f"minAmountOut falls back to the decimal-rescaled input"
            )
        amount_out_minimum = min_amount_out(
            amount_in,
            pool.token_in.decimals,
            pool.token_out.decimals,
            pool.tier.slippage,
            quoted_amount_out,
        )
        deadline = int(self._clock()) + SWAP_DEADLINE_SECONDS
        return TransactionData(
            to=Web3.to_checksum_address(pool.config.router_address),
            data=encode_v4_swap(pool, amount_in, amount_out_minimum, deadline),
            value="0",
            chain_id=pool.config.chain_id,
            route_type=RouteType.STANDARD,
            provider=PROVIDER_NAME,
        )

    async def build_transaction(
        self,
        params: RouteParams,
        quoted_amount_out: Optional[int] = None,
    ) -> TransactionData:
        """Approval transaction while the payer is not ready, the swap afterwards."""
        pool = self.resolve_pool(params)
        if pool is None:
            raise NoRouteFound(
                f"Hook route not available for {params.from_token} -> {params.to_token} "
                f"on {params.from_chain}"
            )

        amount_in = to_base_units(params.amount, pool.token_in.decimals)
        state = await self.get_approval_state(
            pool.config.chain_id, pool.token_in.address, params.from_address, amount_in
        )
        if state != ApprovalState.READY:
            logger.info(f"Hook swap for {params.from_address} needs approval: {state.value}")
            return self.build_approval_transaction(state, pool.config, pool.token_in.address)

        return self.build_swap_transaction(pool, amount_in, quoted_amount_out)
