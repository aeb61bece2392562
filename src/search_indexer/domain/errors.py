from enum import Enum


class IndexerError(Exception):
    """Base class for indexer failures."""


class StartupConfigError(IndexerError):
    """Configuration, mapping or sitemap could not be loaded; nothing was crawled."""


class FetchErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class FetchError(IndexerError):
    def __init__(
        self,
        url: str,
        kind: FetchErrorKind,
        status: int | None = None,
        message: str = "",
    ) -> None:
        self.url = url
        self.kind = kind
        self.status = status
        self.message = message or (f"HTTP {status}" if status is not None else kind.value)
        super().__init__(f"{kind.value} fetching {url}: {self.message}")

    @property
    def is_retryable(self) -> bool:
        return self.kind is FetchErrorKind.RETRYABLE


class SyncError(IndexerError):
    def __init__(self, index_name: str, operation: str, message: str, status: int | None = None) -> None:
        self.index_name = index_name
        self.operation = operation
        self.status = status
        super().__init__(f"{operation} failed for index {index_name}: {message}")

    @property
    def is_retryable(self) -> bool:
        return self.status is None or self.status >= 500 or self.status == 429
