"""Read-only on-chain calls over JSON-RPC (eth_call)."""

import logging
from typing import Optional, Protocol

import httpx

from payroute.config import Settings, get_settings
from payroute.errors import ChainReadError
from payroute.routing.tokens import chain_name

logger = logging.getLogger(__name__)


class ChainReader(Protocol):
    """Anything that can execute a view call on a chain."""

    async def call(self, chain_id: int, to: str, data: str) -> bytes:
        ...


class JsonRpcChainReader:
    """ChainReader backed by per-chain JSON-RPC endpoints from settings."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = http_client or httpx.AsyncClient(timeout=self.settings.rpc_timeout_seconds)
        self._request_id = 0

    def _rpc_url(self, chain_id: int) -> str:
        name = chain_name(chain_id)
        url = self.settings.get_rpc_url(name) if name else ""
        if not url:
            raise ChainReadError(f"No RPC endpoint configured for chain {chain_id}")
        return url

    async def call(self, chain_id: int, to: str, data: str) -> bytes:
        """Execute eth_call against the latest block and return the raw result.

        Raises:
            ChainReadError: transport failure, RPC error or empty result
        """
        rpc_url = self._rpc_url(chain_id)
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": "eth_call",
            "params": [{"to": to, "data": data}, "latest"],
            "id": self._request_id,
        }

        try:
            response = await self._client.post(rpc_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"eth_call to {to} on chain {chain_id} failed: {e}")
            raise ChainReadError(f"RPC request failed: {type(e).__name__}") from e

        if response.status_code != 200:
            raise ChainReadError(f"RPC returned HTTP {response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise ChainReadError("RPC returned a non-JSON body") from e

        if "error" in result:
            message = result["error"].get("message", "unknown error")
            logger.warning(f"eth_call reverted on chain {chain_id}: {message}")
            raise ChainReadError(f"eth_call failed: {message}")

        raw = result.get("result")
        if not raw or raw == "0x":
            raise ChainReadError(f"eth_call to {to} returned no data")
        return bytes.fromhex(raw[2:] if raw.startswith("0x") else raw)

    async def aclose(self) -> None:
        await self._client.aclose()
