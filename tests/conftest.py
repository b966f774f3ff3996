"""Pytest configuration and fixtures."""

import os
from typing import Callable, Optional

import httpx
import pytest
from eth_abi import encode

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["LIFI_API_KEY"] = ""

from payroute.config import Settings
from payroute.routing.erc20 import ERC20_ALLOWANCE_SELECTOR, PERMIT2_ALLOWANCE_SELECTOR
from payroute.routing.lifi import LiFiClient, LiFiRouter
from payroute.routing.v4_hook import V4HookRouter

HOOK_ADDRESS = "0x7777777777777777777777777777777777770080"
PAYER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"
VAULT_A = "0x3333333333333333333333333333333333333333"
VAULT_B = "0x4444444444444444444444444444444444444444"

NOW = 1_700_000_000


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChainReader:
    """ChainReader answering ERC-20 and Permit2 allowance reads from fixed values."""

    def __init__(
        self,
        erc20_allowance: int = 0,
        permit2_amount: int = 0,
        permit2_expiration: int = 0,
        error: Optional[Exception] = None,
    ):
        self.erc20_allowance = erc20_allowance
        self.permit2_amount = permit2_amount
        self.permit2_expiration = permit2_expiration
        self.error = error
        self.calls: list[tuple[int, str, str]] = []

    async def call(self, chain_id: int, to: str, data: str) -> bytes:
        self.calls.append((chain_id, to, data))
        if self.error is not None:
            raise self.error
        if data.startswith(ERC20_ALLOWANCE_SELECTOR):
            return self.erc20_allowance.to_bytes(32, "big")
        if data.startswith(PERMIT2_ALLOWANCE_SELECTOR):
            return encode(
                ["uint160", "uint48", "uint48"],
                [self.permit2_amount, self.permit2_expiration, 0],
            )
        raise AssertionError(f"Unexpected eth_call data: {data[:10]}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with the hook deployed on Base only."""
    return Settings(
        _env_file=None,
        base_hook_address=HOOK_ADDRESS,
        allow_degraded_fallback=True,
    )


@pytest.fixture
def make_lifi() -> Callable[..., LiFiRouter]:
    """Factory for a LiFiRouter whose HTTP traffic goes to ``handler``."""

    def factory(handler, timeout_seconds: float = 5.0) -> LiFiRouter:
        client = LiFiClient(
            integrator="payroute-test",
            deny_exchanges=["nordstern"],
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        return LiFiRouter(client, timeout_seconds=timeout_seconds)

    return factory


@pytest.fixture
def make_hook(settings, clock) -> Callable[..., V4HookRouter]:
    def factory(reader: Optional[FakeChainReader] = None) -> V4HookRouter:
        return V4HookRouter(chain_reader=reader or FakeChainReader(), settings=settings, clock=clock)

    return factory


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected HTTP call: {request.method} {request.url}")
