"""Application configuration using pydantic-settings.

Covers the aggregator endpoint, per-chain RPC endpoints and hook deployments,
and the destination contracts used by the vault deposit routers.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Aggregator (LI.FI)
    # ======================
    lifi_api_url: str = Field(default="https://li.quest/v1", description="LI.FI API base URL")
    lifi_integrator: str = Field(default="payroute", description="Integrator tag sent to LI.FI")
    lifi_api_key: Optional[str] = Field(default=None, description="Optional LI.FI API key")
    deny_exchanges: str = Field(
        default="nordstern", description="Comma-separated exchanges excluded from quotes"
    )
    quote_timeout_seconds: float = Field(
        default=20.0, description="Hard timeout for a single aggregator call"
    )
    quote_cache_ttl_seconds: int = Field(default=30, description="Quote cache TTL")
    default_slippage: float = Field(
        default=0.005, description="Default slippage tolerance (0.5%)"
    )
    restaking_slippage: float = Field(
        default=0.01, description="Default slippage for restaking routes (1%)"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")
    arbitrum_rpc_url: str = Field(
        default="https://arb1.arbitrum.io/rpc", description="Arbitrum RPC URL"
    )
    optimism_rpc_url: str = Field(
        default="https://mainnet.optimism.io", description="Optimism RPC URL"
    )
    rpc_timeout_seconds: float = Field(default=15.0, description="JSON-RPC call timeout")

    # ======================
    # Uniswap v4 hook deployments (zero address = not deployed)
    # ======================
    eth_hook_address: str = Field(default=ZERO_ADDRESS, description="Hook on Ethereum")
    base_hook_address: str = Field(default=ZERO_ADDRESS, description="Hook on Base")
    arbitrum_hook_address: str = Field(default=ZERO_ADDRESS, description="Hook on Arbitrum")
    optimism_hook_address: str = Field(default=ZERO_ADDRESS, description="Hook on Optimism")

    # ======================
    # Vault deposit contracts (Base)
    # ======================
    mev_protected_router_address: str = Field(
        default="0x0B880127FFb09727468159f3883c76Fd1B1c59A2",
        description="MEV-protected vault router (lifiCallback target)",
    )
    restaking_router_address: str = Field(
        default="0x31549dB00B180d528f77083b130C0A045D0CF117",
        description="Restaking router (depositToRestaking target)",
    )
    default_yield_vault: str = Field(
        default="0x4e65fE4DbA92790696d040ac24Aa414708F5c0AB",
        description="Default ERC-4626 vault for yield strategies",
    )

    # ======================
    # Safety Guards
    # ======================
    allow_degraded_fallback: bool = Field(
        default=True,
        description="Allow vault routers to fall back to a plain transfer/bridge",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def denied_exchanges(self) -> list[str]:
        """Parse denied exchanges into a list."""
        return [ex.strip() for ex in self.deny_exchanges.split(",") if ex.strip()]

    def get_rpc_url(self, chain: str) -> str:
        """Get RPC URL for a specific chain name."""
        rpc_map = {
            "ethereum": self.eth_rpc_url,
            "base": self.base_rpc_url,
            "arbitrum": self.arbitrum_rpc_url,
            "optimism": self.optimism_rpc_url,
        }
        return rpc_map.get(chain.lower(), "")

    def get_hook_address(self, chain: str) -> str:
        """Get the deployed hook address for a chain (zero address if none)."""
        hook_map = {
            "ethereum": self.eth_hook_address,
            "base": self.base_hook_address,
            "arbitrum": self.arbitrum_hook_address,
            "optimism": self.optimism_hook_address,
        }
        return hook_map.get(chain.lower(), ZERO_ADDRESS)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "aggregator": {
                "url": self.lifi_api_url,
                "integrator": self.lifi_integrator,
                "api_key": "***" if self.lifi_api_key else "(not set)",
                "timeout_seconds": self.quote_timeout_seconds,
                "cache_ttl_seconds": self.quote_cache_ttl_seconds,
            },
            "chains": {
                chain: {
                    "rpc": self.get_rpc_url(chain),
                    "hook": self.get_hook_address(chain),
                }
                for chain in ("ethereum", "base", "arbitrum", "optimism")
            },
            "vaults": {
                "mev_protected_router": self.mev_protected_router_address,
                "restaking_router": self.restaking_router_address,
            },
            "safety": {
                "allow_degraded_fallback": self.allow_degraded_fallback,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
