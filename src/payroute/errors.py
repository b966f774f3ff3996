"""Error taxonomy.

Validation errors mean the caller's input is wrong and are raised immediately.
Provider errors mean a remote service misbehaved; routers catch them at their
public boundary and turn them into error routes or error results.
"""


class PayRouteError(Exception):
    """Base class for all payroute errors."""


class ValidationError(PayRouteError):
    """The request itself is invalid."""


class InvalidIntent(ValidationError):
    """A required intent field is missing or malformed."""


class InvalidAddress(ValidationError):
    """An address is not a valid 20-byte hex address."""


class InvalidAllocation(ValidationError):
    """Multi-vault allocation percentages do not sum to 100."""


class UnsupportedToken(ValidationError):
    """Symbol has no address on the requested chain."""

    def __init__(self, symbol: str, chain: object):
        self.symbol = symbol
        self.chain = chain
        super().__init__(f"Token not supported: {symbol} on {chain}")


class UnsupportedVault(ValidationError):
    """Protocol / underlying / chain combination is unknown."""

    def __init__(self, protocol: str, underlying: str, chain: object):
        self.protocol = protocol
        self.underlying = underlying
        self.chain = chain
        super().__init__(f"No {protocol} vault found for {underlying} on {chain}")


class ProviderError(PayRouteError):
    """A remote provider failed (HTTP error, malformed response, ...)."""


class AggregatorError(ProviderError):
    """The bridge aggregator returned an error."""


class QuoteTimeout(ProviderError):
    """The provider did not answer within the configured bound."""


class ChainReadError(ProviderError):
    """A JSON-RPC view call failed."""


class NoRouteFound(PayRouteError):
    """Every provider failed or returned nothing."""
