"""Tests for the Uniswap v4 hook router."""

import dataclasses

import pytest
from eth_abi import decode

from conftest import HOOK_ADDRESS, NOW, PAYER, FakeChainReader
from payroute.errors import NoRouteFound, UnsupportedToken, ValidationError
from payroute.routing.base import RouteParams
from payroute.routing.erc20 import (
    ERC20_APPROVE_SELECTOR,
    MAX_UINT160,
    MAX_UINT256,
    MAX_UINT48,
    PERMIT2_ADDRESS,
    PERMIT2_APPROVE_SELECTOR,
)
from payroute.routing.tokens import BASE, BLUECHIP, STABLE, ZERO_ADDRESS
from payroute.routing.v4_hook import (
    DYNAMIC_FEE_FLAG,
    EXECUTE_SELECTOR,
    SWAP_DEADLINE_SECONDS,
    ApprovalState,
    HookToken,
    PoolKey,
    V4HookRouter,
    build_hook_chain_configs,
    classify_pair,
    compute_pool_id,
    min_amount_out,
)

USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
USDT_BASE = "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2"
BASE_ROUTER = "0x6ff5693b99212da76ad316178a184ab56d299b43"

ORDER = [
    ApprovalState.NEEDS_TOKEN_APPROVAL,
    ApprovalState.NEEDS_GATEWAY_APPROVAL,
    ApprovalState.READY,
]


def swap_params(**overrides) -> RouteParams:
    values = dict(
        from_address=PAYER,
        from_chain="base",
        to_chain="base",
        from_token="USDC",
        to_token="USDT",
        amount="1000",
    )
    values.update(overrides)
    return RouteParams(**values)


class TestPoolIdentity:
    """PoolKey ordering and PoolId derivation."""

    def test_pool_id_is_deterministic(self):
        key = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=1, hooks=HOOK_ADDRESS)
        assert compute_pool_id(key) == compute_pool_id(key)
        assert compute_pool_id(key).startswith("0x")
        assert len(compute_pool_id(key)) == 66

    def test_token_order_does_not_matter(self):
        a = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=1, hooks=HOOK_ADDRESS)
        b = PoolKey.from_tokens(USDT_BASE, USDC_BASE, tick_spacing=1, hooks=HOOK_ADDRESS)
        assert a == b
        assert compute_pool_id(a) == compute_pool_id(b)
        assert a.currency0 == USDC_BASE

    def test_parameters_change_the_id(self):
        base = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=1, hooks=HOOK_ADDRESS)
        wider = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=60, hooks=HOOK_ADDRESS)
        static_fee = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=1, hooks=HOOK_ADDRESS, fee=100)
        ids = {compute_pool_id(k) for k in (base, wider, static_fee)}
        assert len(ids) == 3

    def test_dynamic_fee_flag_by_default(self):
        key = PoolKey.from_tokens(USDC_BASE, USDT_BASE, tick_spacing=1, hooks=HOOK_ADDRESS)
        assert key.fee == DYNAMIC_FEE_FLAG

    def test_unsorted_key_rejected(self):
        with pytest.raises(ValueError):
            PoolKey(USDT_BASE, USDC_BASE, DYNAMIC_FEE_FLAG, 1, HOOK_ADDRESS)


class TestTiers:
    def test_stable_pair(self):
        tier = classify_pair(STABLE, STABLE)
        assert (tier.name, tier.fee, tier.tick_spacing, tier.slippage) == ("stable", 100, 1, 3)

    def test_bluechip_pair(self):
        tier = classify_pair(BLUECHIP, BLUECHIP)
        assert (tier.name, tier.fee, tier.tick_spacing, tier.slippage) == ("bluechip", 500, 60, 20)

    def test_mixed_pair(self):
        assert classify_pair(STABLE, BLUECHIP).name == "mixed"
        assert classify_pair(BLUECHIP, STABLE).fee == 3000

    def test_min_amount_out_rescales_decimals(self):
        assert min_amount_out(1_000_000, 6, 18, 3) == 997 * 10**15
        assert min_amount_out(10**18, 18, 6, 20) == 980_000

    def test_min_amount_out_uses_quote(self):
        assert min_amount_out(1_000_000, 6, 6, 3, quoted_amount_out=500_000) == 498_500


class TestApplicability:
    """find_hook_routes returns [] when the hook path does not apply."""

    @pytest.mark.asyncio
    async def test_stable_pair_on_deployed_chain(self, make_hook):
        routes = await make_hook().find_hook_routes(swap_params())

        assert len(routes) == 1
        route = routes[0]
        assert route.id.startswith("v4-0x")
        assert len(route.id) == len("v4-") + 18
        assert route.provider == "Uniswap v4 Hook"
        # gas estimate plus 1 bp of 1000 USDC
        assert route.fee == "$0.15"
        assert route.estimated_time == "~15s"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"from_chain": "ethereum", "to_chain": "ethereum"},  # no hook deployed
            {"to_chain": "arbitrum"},  # cross-chain
            {"to_token": "USDC"},  # same token
            {"to_token": "NOPE"},  # unknown token
            {"from_chain": "solana", "to_chain": "solana"},  # unknown chain
            {"pool_liquidity": 10},  # too thin
        ],
    )
    @pytest.mark.asyncio
    async def test_inapplicable(self, make_hook, overrides):
        hook = make_hook()
        assert await hook.find_hook_routes(swap_params(**overrides)) == []
        assert hook.resolve_pool(swap_params(**overrides)) is None

    @pytest.mark.asyncio
    async def test_build_inapplicable_raises(self, make_hook):
        with pytest.raises(NoRouteFound):
            await make_hook().build_transaction(swap_params(to_chain="arbitrum"))

    def test_deployment_flags(self, make_hook):
        hook = make_hook()
        assert hook.is_deployed("base")
        assert not hook.is_deployed("ethereum")
        assert not hook.is_deployed("solana")


CBBTC_BASE = "0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf"
WETH_BASE = "0x4200000000000000000000000000000000000006"


@pytest.fixture
def extended_hook(settings, clock) -> V4HookRouter:
    """Hook router whose Base registry also lists a second bluechip and a zero-address token."""
    chains = build_hook_chain_configs(settings)
    base = chains[BASE]
    tokens = dict(base.tokens)
    tokens["CBBTC"] = HookToken(CBBTC_BASE, 8, BLUECHIP)
    tokens["ZERO"] = HookToken(ZERO_ADDRESS, 18, STABLE)
    chains[BASE] = dataclasses.replace(base, tokens=tokens)
    return V4HookRouter(chain_reader=FakeChainReader(), settings=settings, chains=chains, clock=clock)


class TestPairCategories:
    """Each pair category resolves to its own pool parameters."""

    @pytest.mark.parametrize(
        "from_token,to_token,amount,tier,fee,tick_spacing,slippage,route_fee",
        [
            ("USDC", "USDT", "1000", "stable", 100, 1, 3, "$0.15"),
            ("USDC", "WETH", "1000", "mixed", 3000, 60, 20, "$3.05"),
            ("WETH", "USDC", "1", "mixed", 3000, 60, 20, "$0.05"),
            ("WETH", "CBBTC", "1", "bluechip", 500, 60, 20, "$0.05"),
        ],
    )
    @pytest.mark.asyncio
    async def test_category_table(
        self, extended_hook, from_token, to_token, amount, tier, fee, tick_spacing, slippage, route_fee
    ):
        params = swap_params(from_token=from_token, to_token=to_token, amount=amount)

        pool = extended_hook.resolve_pool(params)
        assert (pool.tier.name, pool.tier.fee, pool.tier.tick_spacing, pool.tier.slippage) == (
            tier,
            fee,
            tick_spacing,
            slippage,
        )
        assert pool.pool_key.tick_spacing == tick_spacing
        assert pool.pool_key.fee == DYNAMIC_FEE_FLAG
        assert pool.pool_key.hooks.lower() == HOOK_ADDRESS
        assert pool.config.chain_id == BASE

        routes = await extended_hook.find_hook_routes(params)
        assert len(routes) == 1
        assert routes[0].id == f"v4-{pool.pool_id[:18]}"
        assert routes[0].path.endswith(f"via v4 hook ({tier})")
        assert routes[0].fee == route_fee

    def test_mixed_pool_orders_currencies(self, extended_hook):
        pool = extended_hook.resolve_pool(swap_params(from_token="WETH", to_token="USDC", amount="1"))
        assert pool.pool_key.currency0.lower() == WETH_BASE.lower()
        assert pool.pool_key.currency1.lower() == USDC_BASE.lower()
        assert pool.zero_for_one

    @pytest.mark.parametrize("from_token,to_token", [("ZERO", "USDC"), ("USDC", "ZERO")])
    @pytest.mark.asyncio
    async def test_zero_address_token(self, extended_hook, from_token, to_token):
        params = swap_params(from_token=from_token, to_token=to_token)
        assert extended_hook.resolve_pool(params) is None
        assert await extended_hook.find_hook_routes(params) == []


class TestApprovalState:
    """Approval state machine against a fake chain reader."""

    @pytest.mark.asyncio
    async def test_no_token_allowance(self, make_hook):
        state = await make_hook(FakeChainReader()).get_approval_state("base", "USDC", PAYER, 1_000_000)
        assert state == ApprovalState.NEEDS_TOKEN_APPROVAL

    @pytest.mark.asyncio
    async def test_no_permit2_allowance(self, make_hook):
        reader = FakeChainReader(erc20_allowance=MAX_UINT256)
        state = await make_hook(reader).get_approval_state("base", "USDC", PAYER, 1_000_000)
        assert state == ApprovalState.NEEDS_GATEWAY_APPROVAL

    @pytest.mark.asyncio
    async def test_expired_permit2_allowance(self, make_hook):
        reader = FakeChainReader(
            erc20_allowance=MAX_UINT256,
            permit2_amount=MAX_UINT160,
            permit2_expiration=NOW,
        )
        state = await make_hook(reader).get_approval_state("base", "USDC", PAYER, 1_000_000)
        assert state == ApprovalState.NEEDS_GATEWAY_APPROVAL

    @pytest.mark.asyncio
    async def test_ready(self, make_hook):
        reader = FakeChainReader(
            erc20_allowance=1_000_000,
            permit2_amount=1_000_000,
            permit2_expiration=NOW + 60,
        )
        state = await make_hook(reader).get_approval_state("base", "USDC", PAYER, 1_000_000)
        assert state == ApprovalState.READY
        assert len(reader.calls) == 2
        assert reader.calls[0][1] == USDC_BASE
        assert reader.calls[1][1] == PERMIT2_ADDRESS

    @pytest.mark.asyncio
    async def test_state_never_regresses_as_allowances_grow(self, make_hook):
        reader = FakeChainReader(permit2_expiration=NOW + 60)
        hook = make_hook(reader)
        seen = []
        for erc20, permit2 in [(0, 0), (500, 0), (1000, 0), (1000, 500), (1000, 1000), (5000, 5000)]:
            reader.erc20_allowance = erc20
            reader.permit2_amount = permit2
            seen.append(ORDER.index(await hook.get_approval_state("base", "USDC", PAYER, 1000)))
        assert seen == sorted(seen)
        assert seen[-1] == ORDER.index(ApprovalState.READY)

    @pytest.mark.asyncio
    async def test_unknown_chain(self, make_hook):
        with pytest.raises(ValidationError):
            await make_hook().get_approval_state("solana", "USDC", PAYER, 1)

    @pytest.mark.asyncio
    async def test_unknown_token(self, make_hook):
        with pytest.raises(UnsupportedToken):
            await make_hook().get_approval_state("base", "NOPE", PAYER, 1)


class TestTransactionConstruction:
    @pytest.mark.asyncio
    async def test_first_build_is_token_approval(self, make_hook):
        """Fresh payer gets approve(Permit2, max) on the input token."""
        tx = await make_hook(FakeChainReader()).build_transaction(swap_params())

        assert tx.is_approval
        assert tx.provider == "Token Approval"
        assert tx.to == USDC_BASE
        assert tx.chain_id == 8453
        assert tx.data.startswith(ERC20_APPROVE_SELECTOR)
        spender, amount = decode(["address", "uint256"], bytes.fromhex(tx.data[10:]))
        assert spender.lower() == PERMIT2_ADDRESS.lower()
        assert amount == MAX_UINT256

    @pytest.mark.asyncio
    async def test_second_build_is_permit2_approval(self, make_hook):
        reader = FakeChainReader(erc20_allowance=MAX_UINT256)
        tx = await make_hook(reader).build_transaction(swap_params())

        assert tx.provider == "Permit2 Approval"
        assert tx.to == PERMIT2_ADDRESS
        assert tx.data.startswith(PERMIT2_APPROVE_SELECTOR)
        token, spender, amount, expiration = decode(
            ["address", "address", "uint160", "uint48"], bytes.fromhex(tx.data[10:])
        )
        assert token.lower() == USDC_BASE.lower()
        assert spender.lower() == BASE_ROUTER
        assert amount == MAX_UINT160
        assert expiration == MAX_UINT48

    @pytest.mark.asyncio
    async def test_ready_payer_gets_swap(self, make_hook):
        reader = FakeChainReader(
            erc20_allowance=MAX_UINT256,
            permit2_amount=MAX_UINT160,
            permit2_expiration=MAX_UINT48,
        )
        tx = await make_hook(reader).build_transaction(swap_params())

        assert not tx.is_approval
        assert tx.provider == "Uniswap v4 Hook"
        assert tx.to.lower() == BASE_ROUTER
        assert tx.value == "0"
        assert tx.data.startswith(EXECUTE_SELECTOR)

        commands, inputs, deadline = decode(["bytes", "bytes[]", "uint256"], bytes.fromhex(tx.data[10:]))
        assert commands == bytes([0x10])
        assert deadline == NOW + SWAP_DEADLINE_SECONDS

        actions, params = decode(["bytes", "bytes[]"], inputs[0])
        assert actions == bytes([0x06, 0x0C, 0x0F])
        (swap,) = decode(["((address,address,uint24,int24,address),bool,uint128,uint128,bytes)"], params[0])
        pool_key, zero_for_one, amount_in, amount_out_min, _hook_data = swap
        assert pool_key[2] == DYNAMIC_FEE_FLAG
        assert pool_key[3] == 1
        assert zero_for_one is True
        assert amount_in == 1000 * 10**6
        assert amount_out_min == 1000 * 10**6 * 997 // 1000
