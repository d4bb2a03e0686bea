"""
Sync status reporting
Read-only snapshot of checkpoint progress and stored-record totals
"""
import logging

from mailsync.models.schemas.sync import StatusSnapshot
from mailsync.services.sync.adapters import RecordStore

logger = logging.getLogger(__name__)


async def get_sync_status(store: RecordStore) -> StatusSnapshot:
    """
    Build a status snapshot for polling while a job runs.

    Never writes. Inconsistent checkpoints (e.g. processed > queued) are
    reported as found; pending_estimate is floored at zero.
    """
    checkpoint = await store.load_checkpoint()
    counts = await store.aggregate_counts()
    last_sync = await store.latest_message_date()

    pending_estimate = max(0, checkpoint.queued - checkpoint.processed) if checkpoint.is_running else 0

    if checkpoint.processed + checkpoint.errors > checkpoint.queued:
        logger.warning(
            f"Checkpoint counters exceed queued: processed={checkpoint.processed}, "
            f"errors={checkpoint.errors}, queued={checkpoint.queued}"
        )

    return StatusSnapshot(
        status=checkpoint.status,
        processing=checkpoint.is_running,
        queued=checkpoint.queued,
        processed=checkpoint.processed,
        errors=checkpoint.errors,
        pending_estimate=pending_estimate,
        total_stored=counts.total,
        with_embeddings=counts.with_embedding,
        started_at=checkpoint.started_at,
        finished_at=checkpoint.finished_at,
        last_sync=last_sync,
    )
