"""Token, vault and chain registry.

Static mapping of symbols to per-chain addresses and decimals, plus the known
vault tokens (keyed by protocol and underlying). Read-only after import; all
lookups return None for unknown inputs instead of raising.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Optional, Union

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Chain IDs
ETHEREUM = 1
OPTIMISM = 10
BASE = 8453
ARBITRUM = 42161

CHAIN_IDS = {
    "ethereum": ETHEREUM,
    "arbitrum": ARBITRUM,
    "base": BASE,
    "optimism": OPTIMISM,
}

CHAIN_NAMES = {chain_id: name for name, chain_id in CHAIN_IDS.items()}

# Redirect order when the requested destination chain lacks a token
PREFERRED_CHAIN_ORDER = (BASE, ARBITRUM, OPTIMISM, ETHEREUM)

STABLE = "stable"
BLUECHIP = "bluechip"


@dataclass(frozen=True)
class TokenConfig:
    """A token symbol and where it lives."""

    symbol: str
    decimals: int
    addresses: dict[int, str]
    category: str = STABLE

    def address_on(self, chain_id: int) -> Optional[str]:
        return self.addresses.get(chain_id)


@dataclass(frozen=True)
class VaultConfig:
    """A vault token (ERC-4626 share / aToken) accepting a given underlying."""

    protocol: str
    underlying: str
    addresses: dict[int, str]


TOKENS: dict[str, TokenConfig] = {
    "USDC": TokenConfig(
        symbol="USDC",
        decimals=6,
        addresses={
            ETHEREUM: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            ARBITRUM: "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
            BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            OPTIMISM: "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        },
    ),
    "USDT": TokenConfig(
        symbol="USDT",
        decimals=6,
        addresses={
            ETHEREUM: "0xdAC17F958D2ee523a2206206994597C13D831ec7",
            ARBITRUM: "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
            BASE: "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
            OPTIMISM: "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        },
    ),
    "DAI": TokenConfig(
        symbol="DAI",
        decimals=18,
        addresses={
            ETHEREUM: "0x6B175474E89094C44Da98b954EedeAC495271d0F",
            ARBITRUM: "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
            BASE: "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
            OPTIMISM: "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        },
    ),
    "FRAX": TokenConfig(
        symbol="FRAX",
        decimals=18,
        addresses={
            ETHEREUM: "0x853d955aCEf822Db058eb8505911ED77F175b99e",
            ARBITRUM: "0x17FC002b466eEc40DaE837Fc4bE5c67993ddBd6F",
            OPTIMISM: "0x2E3D870790dC77A83DD1d18184Acc7439A53f475",
        },
    ),
    "LUSD": TokenConfig(
        symbol="LUSD",
        decimals=18,
        addresses={
            ETHEREUM: "0x5f98805A4E8be255a32880FDeC7F6728C6568bA0",
            ARBITRUM: "0x93b346b6BC2548dA6A1E7d98E9a421B42541425b",
            OPTIMISM: "0xc40F949F8a4e094D1b49a23ea9241D289B7b2819",
        },
    ),
    "GHO": TokenConfig(
        symbol="GHO",
        decimals=18,
        addresses={
            ETHEREUM: "0x40D16FC0246aD3160Ccc09B8D0D3A2cD28aE6C2f",
            ARBITRUM: "0x7dfF72693f6A4149b17e7C6314655f6A9F7c8B33",
        },
    ),
    "WETH": TokenConfig(
        symbol="WETH",
        decimals=18,
        addresses={
            ETHEREUM: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            ARBITRUM: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
            BASE: "0x4200000000000000000000000000000000000006",
            OPTIMISM: "0x4200000000000000000000000000000000000006",
        },
        category=BLUECHIP,
    ),
    "WBTC": TokenConfig(
        symbol="WBTC",
        decimals=8,
        addresses={
            ETHEREUM: "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
            ARBITRUM: "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
            OPTIMISM: "0x68f180fcCe6836688e9084f035309E29Bf0A2095",
        },
        category=BLUECHIP,
    ),
}

VAULTS: dict[str, VaultConfig] = {
    "aave:USDC": VaultConfig(
        protocol="aave",
        underlying="USDC",
        addresses={
            ETHEREUM: "0x98C23E9d8f34FEFb1B7BD6a91B7FF122F4e16F5c",  # aEthUSDC
            BASE: "0x4e65fE4DbA92790696d040ac24Aa414708F5c0AB",  # aBasUSDC
        },
    ),
    "morpho:USDC": VaultConfig(
        protocol="morpho",
        underlying="USDC",
        addresses={
            BASE: "0x7BfA7C4f149E7415b73bdeDfe609237e29CBF34A",
            ETHEREUM: "0xBEEF01735c132Ada46AA9aA4c54623cAA92A64CB",
        },
    ),
}

STABLECOINS = [symbol for symbol, token in TOKENS.items() if token.category == STABLE]


def resolve_chain_id(chain: Union[str, int, None]) -> Optional[int]:
    """Map a chain name (or an already-numeric id) to its chain id."""
    if chain is None:
        return None
    if isinstance(chain, int):
        return chain if chain in CHAIN_NAMES else None
    return CHAIN_IDS.get(chain.lower().strip())


def chain_name(chain_id: int) -> Optional[str]:
    return CHAIN_NAMES.get(chain_id)


def get_token(symbol: str) -> Optional[TokenConfig]:
    return TOKENS.get(symbol.upper()) if symbol else None


def resolve_token_address(symbol: str, chain_id: int) -> Optional[str]:
    """Look up a token address on a chain. None if unavailable."""
    token = get_token(symbol)
    if token is None:
        return None
    return token.address_on(chain_id)


def resolve_decimals(symbol: str) -> int:
    """Decimals for a symbol, 18 if unknown."""
    token = get_token(symbol)
    return token.decimals if token else 18


def is_stablecoin(symbol: Optional[str]) -> bool:
    return bool(symbol) and symbol.upper() in STABLECOINS


def resolve_vault_address(protocol: str, underlying_symbol: str, chain_id: int) -> Optional[str]:
    """Vault token address for a protocol + underlying on a chain."""
    if not protocol or not underlying_symbol:
        return None
    key = f"{protocol.lower()}:{underlying_symbol.upper()}"
    vault = VAULTS.get(key)
    if vault is None:
        return None
    return vault.addresses.get(chain_id)


def is_vault_address(address: str) -> bool:
    """Whether an address is any known vault token (case-insensitive)."""
    if not address:
        return False
    lower = address.lower()
    return any(
        addr.lower() == lower
        for vault in VAULTS.values()
        for addr in vault.addresses.values()
    )


def resolve_preferred_chain_for_token(symbol: str) -> Optional[int]:
    """First chain, in preference order, where the token exists."""
    token = get_token(symbol)
    if token is None:
        return None
    for chain_id in PREFERRED_CHAIN_ORDER:
        if chain_id in token.addresses:
            return chain_id
    return None


def to_base_units(amount: Union[str, Decimal], decimals: int) -> int:
    """floor(amount * 10**decimals), computed in Decimal."""
    value = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def is_zero_address(address: Optional[str]) -> bool:
    return not address or int(address, 16) == 0
