"""tracksort exception hierarchy.

All custom exceptions inherit from TracksortError, allowing callers
to catch broad or specific error categories as needed.
"""


class TracksortError(Exception):
    """Base exception for all tracksort errors."""

    def __init__(self, message: str = "", issue_id: str | None = None) -> None:
        self.issue_id = issue_id
        super().__init__(message)


class FormatError(TracksortError):
    """Raised when JSON at a boundary cannot be parsed or lacks an identity.

    Examples: unparseable request body, webhook payload without an issue,
    snapshot file that is not an object of numbers.
    """


class PersistenceError(TracksortError):
    """Raised when the position snapshot cannot be read or written.

    A failed write is non-fatal: the in-memory mapping stays authoritative.
    A failed read at startup aborts, like a corrupt snapshot.
    """

    def __init__(
        self,
        message: str = "",
        issue_id: str | None = None,
        path: str | None = None,
    ) -> None:
        self.path = path
        super().__init__(message, issue_id)


class ConfigurationError(TracksortError):
    """Raised at startup when a required setting is missing."""


class UnknownActionWarning(TracksortError):
    """Raised for a webhook action that maps to no event."""

    def __init__(self, message: str = "", issue_id: str | None = None, action: str | None = None) -> None:
        self.action = action
        super().__init__(message, issue_id)


class KeyspaceExhaustedError(TracksortError):
    """Raised when bisection leaves no key strictly inside the interval.

    The caller is expected to rebalance the store and retry.
    """

    def __init__(
        self,
        message: str = "",
        issue_id: str | None = None,
        lower: float | None = None,
        upper: float | None = None,
    ) -> None:
        self.lower = lower
        self.upper = upper
        super().__init__(message, issue_id)


class ExternalAPIError(TracksortError):
    """Raised when a collaborator API call fails.

    Examples: HTTP timeout, authentication failure, non-2xx status,
    unexpected response shape.
    """

    def __init__(
        self,
        message: str = "",
        issue_id: str | None = None,
        status_code: int | None = None,
        service: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.service = service
        super().__init__(message, issue_id)
