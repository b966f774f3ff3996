"""Web boundary layer.

Contracts (pydantic models), services and controllers for the HTTP API. The
layer is non-custodial: it never holds keys, and it returns transactions
unsigned for the payer's wallet.
"""

__all__ = [
    "contracts",
    "services",
    "controllers",
]
