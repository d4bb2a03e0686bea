"""
Batch Processor
Embeds and stores a bounded slice of new sent messages with bounded concurrency

Per-message failures are counted, never raised:
- recoverable store contention is retried once after a short fixed delay
- everything else (embedding failures, permanent store errors) is terminal
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from mailsync.models.schemas.sync import BatchResult, MailMessage
from mailsync.services.sync.adapters import EmbeddingPacing
from mailsync.services.sync.errors import EmbeddingError, RecordStoreError, TransientStoreError

logger = logging.getLogger(__name__)

# Substrings seen in transient file/storage contention errors
RECOVERABLE_ERROR_HINTS = (
    "enoent",
    "eexist",
    "eperm",
    "ebusy",
    "no such file or directory",
    "resource busy",
    "temporarily unavailable",
    "locked",
)


def is_recoverable_store_error(exc: BaseException) -> bool:
    """
    True for transient storage contention worth one immediate retry.

    Embedding provider errors are never recoverable, whatever their text says.
    """
    if isinstance(exc, TransientStoreError):
        return True
    if isinstance(exc, EmbeddingError) or not isinstance(exc, (RecordStoreError, OSError)):
        return False
    message = str(exc).lower()
    return any(hint in message for hint in RECOVERABLE_ERROR_HINTS)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Per-message retry policy.

    max_attempts counts the first try: 2 means "retry exactly once".
    """
    max_attempts: int = 2
    backoff_seconds: float = 0.2
    is_retryable: Callable[[BaseException], bool] = is_recoverable_store_error

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(self.is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


# embed-and-store for one message; raises on failure
MessageHandler = Callable[[MailMessage], Awaitable[object]]


class BatchProcessor:
    """
    Pure batch-in, counts-out processor. Knows nothing about checkpoints.

    Messages run in groups of `pacing.concurrency`; each group is awaited as
    a whole before the next starts, with `pacing.inter_batch_delay` seconds
    between groups.
    """

    def __init__(
        self,
        handler: MessageHandler,
        pacing: EmbeddingPacing,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.handler = handler
        self.pacing = pacing
        self.retry_policy = retry_policy or RetryPolicy()

    async def _process_one(self, message: MailMessage) -> bool:
        try:
            async for attempt in self.retry_policy.retrying():
                with attempt:
                    await self.handler(message)
            return True
        except Exception as e:
            if self.retry_policy.is_retryable(e):
                logger.error(f"Message {message.id} failed after retry: {e}")
            else:
                logger.error(f"Message {message.id} failed ({type(e).__name__}): {e}")
            return False

    async def process_batch(self, messages: List[MailMessage]) -> BatchResult:
        result = BatchResult()
        if not messages:
            return result

        group_size = self.pacing.concurrency
        total_groups = (len(messages) + group_size - 1) // group_size

        for index in range(total_groups):
            group = messages[index * group_size:(index + 1) * group_size]
            outcomes = await asyncio.gather(*(self._process_one(m) for m in group))

            for message, ok in zip(group, outcomes):
                if ok:
                    result.processed += 1
                else:
                    result.errors += 1
                    result.failed_ids.append(message.id)

            logger.info(
                f"Batch group {index + 1}/{total_groups}: "
                f"{result.processed} processed, {result.errors} errors so far"
            )

            if self.pacing.inter_batch_delay and index < total_groups - 1:
                await asyncio.sleep(self.pacing.inter_batch_delay)

        return result
