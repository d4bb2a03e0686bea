"""
Sync Routes
Trigger sent-mail sync cycles and poll their progress
"""
import logging
from typing import Optional

import httpx
import redis
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from supabase import Client

from mailsync.core.config import settings
from mailsync.core.dependencies import (
    build_sync_coordinator,
    get_http_client,
    get_record_store,
    get_redis,
    get_supabase,
)
from mailsync.core.security import verify_api_key
from mailsync.middleware.rate_limit import limiter
from mailsync.models.schemas.sync import StatusSnapshot, SyncCycleResult, SyncQueuedResponse
from mailsync.services.jobs.tasks import sync_sent_mail_task
from mailsync.services.sync.errors import MailFetchError, RecordStoreError, SyncAlreadyRunningError
from mailsync.services.sync.status import get_sync_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(verify_api_key)])

MAX_MESSAGES_LIMIT = 500


@router.post("/{account_id}/sent", response_model=SyncCycleResult)
@limiter.limit("60/minute")
async def run_sent_sync_cycle(
    account_id: str,
    request: Request,
    max_messages: Optional[int] = Query(default=None, ge=1, le=MAX_MESSAGES_LIMIT),
    supabase: Client = Depends(get_supabase),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    redis_client: Optional[redis.Redis] = Depends(get_redis)
):
    """
    Run ONE bounded sync cycle and report whether to call again.

    Callers that auto-resume should loop on should_continue with a short
    delay and an iteration cap.
    """
    max_messages = max_messages or settings.sync_default_max_messages
    coordinator = build_sync_coordinator(account_id, supabase, http_client, redis_client)

    try:
        return await coordinator.run_sync_cycle(max_messages)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except MailFetchError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to fetch sent mail: {e}")
    except RecordStoreError as e:
        logger.error(f"Record store failure during sync for account {account_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Record store unavailable")


@router.post(
    "/{account_id}/sent/background",
    response_model=SyncQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED
)
@limiter.limit("20/minute")
async def queue_sent_sync(
    account_id: str,
    request: Request,
    max_messages: Optional[int] = Query(default=None, ge=1, le=MAX_MESSAGES_LIMIT)
):
    """Enqueue a background job that runs cycles until the backfill completes."""
    if not settings.redis_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background sync unavailable: REDIS_URL not configured"
        )

    max_messages = max_messages or settings.sync_default_max_messages
    sync_sent_mail_task.send(account_id, max_messages)
    logger.info(f"Queued background sent-mail sync for account {account_id} (max_messages={max_messages})")
    return SyncQueuedResponse(status="queued", account_id=account_id, max_messages=max_messages)


@router.get("/{account_id}/status", response_model=StatusSnapshot)
async def sent_sync_status(
    account_id: str,
    supabase: Client = Depends(get_supabase)
):
    """Progress snapshot, polled while a job is running."""
    try:
        return await get_sync_status(get_record_store(account_id, supabase))
    except RecordStoreError as e:
        logger.error(f"Failed to load sync status for account {account_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Record store unavailable")
