"""Custom exceptions for the tokenomics indexer.

Expected failures (a source that is down, a record that is missing) travel
as FetchResult values. The exceptions here cover misuse and the few places
where raising is the clearer contract.
"""


class TokenomicsError(Exception):
    """Base exception for all indexer errors."""


class StorageError(TokenomicsError):
    """Raised when the blob store cannot be used or a write fails."""


class InvalidDaysError(TokenomicsError):
    """Raised when a range read is requested with an unsupported day count."""


class SourceHTTPError(TokenomicsError):
    """Raised inside a fetch attempt when a source answers with a non-2xx status."""

    def __init__(self, status: int, reason: str | None = None) -> None:
        self.status = status
        self.reason = reason or ""
        super().__init__(f"HTTP {status}: {self.reason}".rstrip())
