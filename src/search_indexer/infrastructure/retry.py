import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from src.config.logger_config import logger
from src.search_indexer.domain.errors import FetchError, SyncError

T = TypeVar("T")


def is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, (FetchError, SyncError)):
        return exc.is_retryable
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    exponential: bool = False
    max_delay_seconds: float = 30.0
    should_retry: Callable[[BaseException], bool] = is_retryable_error

    def delay_for(self, attempt: int) -> float:
        if not self.exponential:
            return self.base_delay_seconds
        return min(self.base_delay_seconds * 2 ** (attempt - 1), self.max_delay_seconds)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    description: str = "operation",
) -> T:
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts or not policy.should_retry(exc):
                if attempt > 1:
                    logger.error("{} failed after {} attempts. Error: {}", description, attempt, exc)
                raise
            wait_time = policy.delay_for(attempt)
            logger.warning(
                "{} unstable ({}). Attempt {}/{}, retrying in {}s...",
                description,
                exc,
                attempt,
                policy.max_attempts,
                wait_time,
            )
            await asyncio.sleep(wait_time)
            attempt += 1
