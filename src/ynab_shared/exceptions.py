"""Custom exceptions for ynab-shared."""


class YnabSharedError(Exception):
    """Base exception for all ynab-shared errors."""

    pass


class ConfigurationError(YnabSharedError):
    """Raised when configuration is invalid or missing.

    Fatal: the whole process stops.
    """

    pass


class NotFoundError(YnabSharedError):
    """Raised when an expected month or category is absent in a budget snapshot.

    Recoverable: only the owning period pass is abandoned.
    """

    pass


class ReconciliationError(YnabSharedError):
    """Raised when an invariant of the reconciliation is violated.

    Fatal to the owner pass that detected it.
    """

    pass


class APIError(YnabSharedError):
    """Base class for API-related errors."""

    pass


class GatewayError(APIError):
    """Raised when a call through the rate-limited gateway fails.

    Never retried automatically; steps already applied stay in effect.
    """

    def __init__(self, call_site: str, message: str | None = None):
        self.call_site = call_site
        super().__init__(message or f"YNAB API call failed: {call_site}")


class RateLimitExceededError(GatewayError):
    """Raised when the hourly call budget is exhausted."""

    def __init__(self, call_site: str, calls: int, limit: int):
        self.calls = calls
        self.limit = limit
        super().__init__(
            call_site,
            f"Hourly YNAB call budget exhausted ({calls}/{limit}), "
            f"refusing {call_site}",
        )
