"""
Sent-mail sync orchestration engine
Runs one resumable, bounded cycle of the historical sent-mail backfill

Each invocation is stateless: all progress lives in the account's
checkpoint, written once before the batch starts and once after it ends.
A crash between the two writes is safe because the next cycle re-discovers
the same un-ingested messages and upserts are idempotent per message id.
"""
import logging
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Set

from mailsync.models.schemas.sync import (
    CheckpointState,
    MailMessage,
    SyncCycleResult,
    SyncStatus,
)
from mailsync.services.sync.adapters import MailProvider, RecordStore
from mailsync.services.sync.batch import BatchProcessor
from mailsync.services.sync.errors import MailFetchError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def filter_new_messages(candidates: Iterable[MailMessage], ingested_ids: Set[str]) -> List[MailMessage]:
    """
    Drop messages already stored, keeping provider order.
    Repeated ids within one fetch are collapsed to their first occurrence.
    """
    seen: Set[str] = set()
    new_messages = []
    for message in candidates:
        if message.id in ingested_ids or message.id in seen:
            continue
        seen.add(message.id)
        new_messages.append(message)
    return new_messages


class SyncCoordinator:
    """
    Owns the checkpoint state machine for one account.

    Args:
        account_id: Connected account being synced
        store: Record store scoped to the account
        provider: Sent-mail source
        batch_processor: Embeds and stores one batch
        batch_size: Messages processed per cycle
        lease_factory: Returns an async context manager guarding the cycle
            (a SyncLease in production); None runs unguarded
        clock: Source of "now", injectable for tests
    """

    def __init__(
        self,
        account_id: str,
        store: RecordStore,
        provider: MailProvider,
        batch_processor: BatchProcessor,
        batch_size: int,
        lease_factory: Optional[Callable[[], object]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.account_id = account_id
        self.store = store
        self.provider = provider
        self.batch_processor = batch_processor
        self.batch_size = batch_size
        self.lease_factory = lease_factory
        self.clock = clock

    async def run_sync_cycle(self, max_messages: int) -> SyncCycleResult:
        """
        Run one cycle: fetch, dedup, process one batch, checkpoint.

        Raises:
            MailFetchError: provider failed; checkpoint untouched
            RecordStoreError: checkpoint or id listing failed
            SyncAlreadyRunningError: another invocation holds the lease
        """
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")

        lease = self.lease_factory() if self.lease_factory else nullcontext()
        async with lease:
            return await self._run_cycle(max_messages)

    async def _run_cycle(self, max_messages: int) -> SyncCycleResult:
        # 1. Current checkpoint
        checkpoint = await self.store.load_checkpoint()
        is_continuing = checkpoint.is_running

        logger.info(
            f"🚀 Sync cycle for account {self.account_id} "
            f"({'resuming' if is_continuing else 'new job'}, max_messages={max_messages})"
        )

        # 2. Candidates (no checkpoint mutation on failure)
        try:
            candidates = await self.provider.fetch_sent_messages(max_messages)
        except MailFetchError as e:
            logger.error(f"❌ Sent-mail fetch failed for account {self.account_id}: {e}")
            raise

        # 3. Dedup against stored ids
        ingested_ids = await self.store.list_ingested_ids()
        new_messages = filter_new_messages(candidates, ingested_ids)

        logger.info(
            f"📬 Fetched {len(candidates)} sent messages, "
            f"{len(new_messages)} not yet ingested"
        )

        # 4. Nothing to do
        if not new_messages:
            if is_continuing:
                finished = checkpoint.model_copy(update={
                    "status": SyncStatus.IDLE,
                    "finished_at": self.clock(),
                })
                await self.store.save_checkpoint(finished)
                logger.info(f"✅ Sync job complete for account {self.account_id}: {checkpoint.processed} processed")
            else:
                logger.info(f"All sent messages already ingested for account {self.account_id}")

            return SyncCycleResult(
                processed_this_batch=0,
                errors_this_batch=0,
                total_processed=checkpoint.processed,
                total_errors=checkpoint.errors,
                remaining=0,
                should_continue=False,
            )

        # 5-6. Mark running before touching any message
        if is_continuing:
            running = CheckpointState(
                status=SyncStatus.RUNNING,
                queued=max(checkpoint.queued, len(new_messages)),
                processed=checkpoint.processed,
                errors=checkpoint.errors,
                started_at=checkpoint.started_at or self.clock(),
                finished_at=None,
            )
        else:
            running = CheckpointState(
                status=SyncStatus.RUNNING,
                queued=len(new_messages),
                processed=0,
                errors=0,
                started_at=self.clock(),
                finished_at=None,
            )
        await self.store.save_checkpoint(running)

        # 7. One bounded batch
        batch = new_messages[:self.batch_size]
        batch_result = await self.batch_processor.process_batch(batch)

        # 8. Accumulate onto the stored checkpoint
        current = await self.store.load_checkpoint()
        total_processed = current.processed + batch_result.processed
        total_errors = current.errors + batch_result.errors
        remaining = max(0, len(new_messages) - len(batch))

        # A message failing in several cycles of one job is counted each time
        queued = max(running.queued, total_processed + total_errors)

        # 9. Final checkpoint for this cycle
        done = remaining == 0
        final = CheckpointState(
            status=SyncStatus.IDLE if done else SyncStatus.RUNNING,
            queued=queued,
            processed=total_processed,
            errors=total_errors,
            started_at=running.started_at,
            finished_at=self.clock() if done else None,
        )
        await self.store.save_checkpoint(final)

        logger.info(
            f"{'✅' if done else '⏭️ '} Sync cycle for account {self.account_id}: "
            f"{batch_result.processed} processed, {batch_result.errors} errors this batch; "
            f"{total_processed}/{queued} total, {remaining} remaining"
        )

        # 10. Report
        return SyncCycleResult(
            processed_this_batch=batch_result.processed,
            errors_this_batch=batch_result.errors,
            total_processed=total_processed,
            total_errors=total_errors,
            remaining=remaining,
            should_continue=not done,
        )
