"""Approval checks.

Two kinds of check:
- the hook's Permit2 chain (token -> Permit2 -> router) when no spender is
  given and the hook is deployed on the chain
- a plain ERC-20 allowance against a spender, the LI.FI Diamond by default

Native ETH never needs an approval.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from web3 import Web3

from payroute.errors import InvalidAddress, UnsupportedToken, ValidationError
from payroute.routing.base import RouteType, TransactionData
from payroute.routing.erc20 import MAX_UINT256, decode_uint256, encode_allowance, encode_approve
from payroute.routing.lifi import LIFI_DIAMOND_ADDRESS
from payroute.routing.tokens import TOKENS, get_token, resolve_chain_id, to_base_units
from payroute.routing.v4_hook import TOKEN_APPROVAL_PROVIDER, ApprovalState, V4HookRouter
from payroute.web.contracts.approvals import ApprovalCheckRequest, ApprovalCheckResponse
from payroute.web.services.transaction_service import to_response

logger = logging.getLogger(__name__)

NATIVE_SYMBOLS = frozenset({"ETH"})


def _required_units(amount: str, decimals: int) -> int:
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise ValidationError(f"amount is not a decimal number: {amount}") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"amount must be positive: {amount}")
    return to_base_units(value, decimals)


def _resolve_token(token: str, chain_id: int) -> tuple[str, int]:
    """(address, decimals) for a symbol or a raw address on a chain."""
    if token.startswith("0x"):
        if not Web3.is_address(token):
            raise InvalidAddress(f"Invalid token address: {token}")
        for config in TOKENS.values():
            address = config.address_on(chain_id)
            if address and address.lower() == token.lower():
                return address, config.decimals
        return token, 18

    config = get_token(token)
    address = config.address_on(chain_id) if config else None
    if address is None:
        raise UnsupportedToken(token, chain_id)
    return address, config.decimals


class ApprovalService:
    """Read-only approval checks backed by the hook router's chain reader."""

    def __init__(self, hook: V4HookRouter):
        self._hook = hook

    async def check(self, request: ApprovalCheckRequest) -> ApprovalCheckResponse:
        """Check the approval state and build the next approval if one is missing.

        Raises:
            ValidationError: unknown chain, bad amount, bad address or unsupported token
            ChainReadError: an RPC read failed
        """
        chain_id = resolve_chain_id(request.chain)
        if chain_id is None:
            raise ValidationError(f"Unsupported chain: {request.chain}")
        if not Web3.is_address(request.owner):
            raise InvalidAddress(f"Invalid owner address: {request.owner}")
        if request.spender is not None and not Web3.is_address(request.spender):
            raise InvalidAddress(f"Invalid spender address: {request.spender}")

        if request.token.upper() in NATIVE_SYMBOLS:
            return ApprovalCheckResponse(
                state=ApprovalState.READY.value,
                spender=request.spender,
                required=str(_required_units(request.amount, 18)),
            )

        token_address, decimals = _resolve_token(request.token, chain_id)
        required = _required_units(request.amount, decimals)

        if request.spender is None and self._hook.is_deployed(chain_id):
            return await self._check_hook(chain_id, token_address, request.owner, required)
        return await self._check_erc20(
            chain_id, token_address, request.owner, request.spender or LIFI_DIAMOND_ADDRESS, required
        )

    async def _check_hook(self, chain_id: int, token_address: str, owner: str, required: int) -> ApprovalCheckResponse:
        config = self._hook.get_chain_config(chain_id)
        state = await self._hook.get_approval_state(chain_id, token_address, owner, required)
        approval: Optional[TransactionData] = None
        if state != ApprovalState.READY:
            approval = self._hook.build_approval_transaction(state, config, token_address)
        return ApprovalCheckResponse(
            state=state.value,
            spender=config.router_address,
            required=str(required),
            approval_transaction=to_response(approval) if approval else None,
        )

    async def _check_erc20(
        self,
        chain_id: int,
        token_address: str,
        owner: str,
        spender: str,
        required: int,
    ) -> ApprovalCheckResponse:
        raw = await self._hook.chain_reader.call(chain_id, token_address, encode_allowance(owner, spender))
        allowance = decode_uint256(raw)
        logger.debug(f"Allowance {owner} -> {spender} on {token_address}: {allowance}")

        if allowance >= required:
            return ApprovalCheckResponse(
                state=ApprovalState.READY.value,
                spender=spender,
                allowance=str(allowance),
                required=str(required),
            )

        approval = TransactionData(
            to=Web3.to_checksum_address(token_address),
            data=encode_approve(spender, MAX_UINT256),
            value="0",
            chain_id=chain_id,
            route_type=RouteType.STANDARD,
            provider=TOKEN_APPROVAL_PROVIDER,
        )
        return ApprovalCheckResponse(
            state=ApprovalState.NEEDS_TOKEN_APPROVAL.value,
            spender=spender,
            allowance=str(allowance),
            required=str(required),
            approval_transaction=to_response(approval),
        )
