"""ERC-20 and Permit2 call data encoding.

Plain ERC-20 calls are padded by hand; Permit2 calls with packed integer
widths go through eth_abi.
"""

import logging

from eth_abi import decode, encode
from web3 import Web3

from payroute.errors import ChainReadError

logger = logging.getLogger(__name__)

# ERC-20 function selectors
ERC20_TRANSFER_SELECTOR = "0xa9059cbb"  # transfer(address,uint256)
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)

# Canonical Permit2 deployment (same address on every EVM chain)
PERMIT2_ADDRESS = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

MAX_UINT256 = 2**256 - 1
MAX_UINT160 = 2**160 - 1
MAX_UINT48 = 2**48 - 1


def function_selector(signature: str) -> str:
    """4-byte selector for a canonical function signature, 0x-prefixed."""
    return "0x" + Web3.keccak(text=signature)[:4].hex().removeprefix("0x")


PERMIT2_ALLOWANCE_SELECTOR = function_selector("allowance(address,address,address)")
PERMIT2_APPROVE_SELECTOR = function_selector("approve(address,address,uint160,uint48)")


def _pad_address(address: str) -> str:
    return address.lower().replace("0x", "").zfill(64)


def _pad_uint(value: int) -> str:
    return hex(value)[2:].zfill(64)


def encode_transfer(to_address: str, amount: int) -> str:
    """transfer(address to, uint256 amount)"""
    return f"{ERC20_TRANSFER_SELECTOR}{_pad_address(to_address)}{_pad_uint(amount)}"


def encode_approve(spender: str, amount: int = MAX_UINT256) -> str:
    """approve(address spender, uint256 amount)"""
    return f"{ERC20_APPROVE_SELECTOR}{_pad_address(spender)}{_pad_uint(amount)}"


def encode_allowance(owner: str, spender: str) -> str:
    """allowance(address owner, address spender)"""
    return f"{ERC20_ALLOWANCE_SELECTOR}{_pad_address(owner)}{_pad_address(spender)}"


def decode_uint256(raw: bytes) -> int:
    if len(raw) < 32:
        raise ChainReadError(f"Expected a 32-byte word, got {len(raw)} bytes")
    return int.from_bytes(raw[:32], "big")


def encode_permit2_allowance(user: str, token: str, spender: str) -> str:
    """Permit2 allowance(address user, address token, address spender)"""
    args = encode(
        ["address", "address", "address"],
        [
            Web3.to_checksum_address(user),
            Web3.to_checksum_address(token),
            Web3.to_checksum_address(spender),
        ],
    )
    return PERMIT2_ALLOWANCE_SELECTOR + args.hex()


def decode_permit2_allowance(raw: bytes) -> tuple[int, int, int]:
    """(amount, expiration, nonce) from a Permit2 allowance() result."""
    if len(raw) < 96:
        raise ChainReadError(f"Malformed Permit2 allowance result ({len(raw)} bytes)")
    amount, expiration, nonce = decode(["uint160", "uint48", "uint48"], raw[:96])
    return amount, expiration, nonce


def encode_permit2_approve(
    token: str,
    spender: str,
    amount: int = MAX_UINT160,
    expiration: int = MAX_UINT48,
) -> str:
    """Permit2 approve(address token, address spender, uint160 amount, uint48 expiration)"""
    args = encode(
        ["address", "address", "uint160", "uint48"],
        [
            Web3.to_checksum_address(token),
            Web3.to_checksum_address(spender),
            amount,
            expiration,
        ],
    )
    return PERMIT2_APPROVE_SELECTOR + args.hex()
