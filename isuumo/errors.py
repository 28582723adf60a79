"""Error kinds surfaced by the service layer.

Handlers map NotFound to 404, InvalidInput to 400 and every other
IsuumoError to 500.
"""


class IsuumoError(Exception):
    """Base class for all service errors."""


class NotFound(IsuumoError):
    """The requested row does not exist (or a chair is sold out)."""


class InvalidInput(IsuumoError):
    """The request was rejected before touching the store."""


class StoreFailure(IsuumoError):
    """A query or connection to the store failed."""


class CacheLoadFailure(IsuumoError):
    """A cache loader failed; the original error is chained as __cause__."""
