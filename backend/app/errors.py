from __future__ import annotations


class MarketDeskError(Exception):
    """Base class for errors raised by the service."""


class FetchFailure(MarketDeskError):
    """An upstream provider call failed.

    ``retryable`` is set for server errors, rate limiting and transport
    problems; client errors such as 404 are not worth repeating.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class DataUnavailable(MarketDeskError):
    """Nothing fresh could be fetched and nothing was cached yet."""

    def __init__(self, name: str) -> None:
        super().__init__(f"no data available for {name}")
        self.name = name
