"""
Dramatiq Background Tasks
Auto-resumes the sent-mail backfill one bounded cycle per message
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import dramatiq

from mailsync.core.config import settings
from mailsync.models.schemas.sync import SyncCycleResult
from mailsync.services.sync.errors import SyncAlreadyRunningError

logger = logging.getLogger(__name__)


async def _run_cycle_with_cleanup(account_id: str, max_messages: int) -> SyncCycleResult:
    """
    Run one sync cycle with fresh clients.
    Dramatiq workers run in separate processes, so we can't share global clients.
    """
    from mailsync.core.dependencies import (
        build_sync_coordinator,
        create_http_client,
        create_redis_client,
        create_supabase_client,
    )

    http_client = create_http_client()
    redis_client = create_redis_client()
    try:
        coordinator = build_sync_coordinator(
            account_id,
            supabase=create_supabase_client(),
            http_client=http_client,
            redis_client=redis_client
        )
        return await coordinator.run_sync_cycle(max_messages)
    finally:
        # Cleanup HTTP client in the same event loop
        await http_client.aclose()
        if redis_client is not None:
            redis_client.close()


@dramatiq.actor(max_retries=3)
def sync_sent_mail_task(account_id: str, max_messages: int, iteration: int = 0) -> Optional[Dict[str, Any]]:
    """
    Background job for one sent-mail sync cycle.

    Re-enqueues itself while the cycle reports more work, up to
    SYNC_MAX_ITERATIONS links in the chain.

    Args:
        account_id: Connected account to sync
        max_messages: Sent messages considered per cycle
        iteration: Position in the auto-resume chain (0 for the first cycle)
    """
    logger.info(f"🚀 Sent-mail sync cycle {iteration + 1} for account {account_id}")

    try:
        result = asyncio.run(_run_cycle_with_cleanup(account_id, max_messages))
    except SyncAlreadyRunningError:
        if iteration == 0:
            # A fresh chain collided with a running one; that one finishes the job
            logger.info(f"Sync already running for account {account_id}, dropping new chain")
            return None
        # Mid-job: the lease holder may be a one-off HTTP cycle
        logger.info(f"Sync lease busy for account {account_id}, retrying cycle {iteration + 1} later")
        _requeue(account_id, max_messages, iteration, remaining=None)
        return None
    except Exception as e:
        logger.error(f"❌ Sent-mail sync cycle {iteration + 1} for account {account_id} failed: {e}")
        raise  # Re-raise for Dramatiq retry logic

    if not result.should_continue:
        logger.info(f"✅ Sent-mail sync complete for account {account_id}: {result.total_processed} processed")
    else:
        _requeue(account_id, max_messages, iteration, remaining=result.remaining)

    return result.model_dump()


def _requeue(account_id: str, max_messages: int, iteration: int, remaining: Optional[int]) -> bool:
    """Enqueue the next link of the chain unless SYNC_MAX_ITERATIONS is reached."""
    if iteration + 1 >= settings.sync_max_iterations:
        logger.error(
            f"🛑 Sent-mail sync for account {account_id} hit the {settings.sync_max_iterations}-cycle cap "
            f"with {remaining if remaining is not None else 'unknown'} remaining; stopping"
        )
        return False

    sync_sent_mail_task.send_with_options(
        args=(account_id, max_messages, iteration + 1),
        delay=settings.sync_resume_delay_ms
    )
    logger.info(f"⏭️  Queued cycle {iteration + 2} for account {account_id}")
    return True
