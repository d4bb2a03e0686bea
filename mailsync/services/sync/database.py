"""
Supabase record store for the sent-mail sync pipeline
Handles ingested message records and per-account sync checkpoints

Tables:
- sent_emails: one row per (account_id, id), upserted
- sync_state: one row per account_id, upserted
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from mailsync.models.schemas.sync import (
    AggregateCounts,
    CheckpointState,
    IngestedMessageRecord,
    SyncStatus,
)
from mailsync.services.sync.errors import RecordStoreError, TransientStoreError

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "sent_emails"
CHECKPOINT_TABLE = "sync_state"

# PostgREST caps a single select at 1000 rows by default
PAGE_SIZE = 1000

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
TRANSIENT_PG_CODES = {"40001", "40P01", "55P03", "57014"}
TRANSIENT_HTTP_CODES = {409, 423, 503}


# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================

def _wrap_store_error(exc: Exception, operation: str) -> RecordStoreError:
    """Translate client exceptions into the pipeline's store error types."""
    if isinstance(exc, httpx.TransportError):
        return TransientStoreError(f"{operation}: {exc}")

    if isinstance(exc, APIError):
        code = str(exc.code or "")
        status_code = int(code) if code.isdigit() and len(code) == 3 else None
        message = f"{operation}: {exc.message or exc}"
        if code in TRANSIENT_PG_CODES or status_code in TRANSIENT_HTTP_CODES:
            return TransientStoreError(message, status_code=status_code)
        return RecordStoreError(message, status_code=status_code)

    return RecordStoreError(f"{operation}: {exc}")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# ============================================================================
# RECORD STORE
# ============================================================================

class SupabaseRecordStore:
    """
    Record store scoped to one connected account.

    supabase-py is synchronous, so each call runs in a worker thread to keep
    concurrent embed-and-store tasks from serializing on the event loop.
    """

    def __init__(self, supabase: Client, account_id: str):
        self.supabase = supabase
        self.account_id = account_id

    async def _execute(self, operation: str, build: Callable[[], Any]):
        try:
            return await asyncio.to_thread(lambda: build().execute())
        except (APIError, httpx.HTTPError) as e:
            error = _wrap_store_error(e, operation)
            logger.warning(f"Record store error ({type(error).__name__}) for account {self.account_id}: {error}")
            raise error from e

    # ------------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------------

    async def list_ingested_ids(self) -> Set[str]:
        """All message ids already stored for this account."""
        ids: Set[str] = set()
        start = 0

        while True:
            end = start + PAGE_SIZE - 1
            result = await self._execute(
                "list_ingested_ids",
                lambda: self.supabase.table(MESSAGES_TABLE)
                .select("id")
                .eq("account_id", self.account_id)
                .order("id")
                .range(start, end)
            )
            rows = result.data or []
            ids.update(row["id"] for row in rows)
            if len(rows) < PAGE_SIZE:
                break
            start += PAGE_SIZE

        return ids

    async def upsert_message(self, record: IngestedMessageRecord) -> None:
        payload = _record_to_row(record)
        await self._execute(
            "upsert_message",
            lambda: self.supabase.table(MESSAGES_TABLE).upsert(payload, on_conflict="account_id,id")
        )

    async def aggregate_counts(self) -> AggregateCounts:
        total = await self._execute(
            "aggregate_counts",
            lambda: self.supabase.table(MESSAGES_TABLE)
            .select("id", count="exact")
            .eq("account_id", self.account_id)
            .limit(1)
        )
        embedded = await self._execute(
            "aggregate_counts",
            lambda: self.supabase.table(MESSAGES_TABLE)
            .select("id", count="exact")
            .eq("account_id", self.account_id)
            .eq("has_embedding", True)
            .limit(1)
        )
        return AggregateCounts(total=total.count or 0, with_embedding=embedded.count or 0)

    async def latest_message_date(self) -> Optional[datetime]:
        result = await self._execute(
            "latest_message_date",
            lambda: self.supabase.table(MESSAGES_TABLE)
            .select("date")
            .eq("account_id", self.account_id)
            .not_.is_("date", "null")
            .order("date", desc=True)
            .limit(1)
        )
        if not result.data:
            return None
        return _parse_timestamp(result.data[0].get("date"))

    # ------------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------------

    async def load_checkpoint(self) -> CheckpointState:
        result = await self._execute(
            "load_checkpoint",
            lambda: self.supabase.table(CHECKPOINT_TABLE)
            .select("*")
            .eq("account_id", self.account_id)
            .limit(1)
        )
        if not result.data:
            return CheckpointState()

        row = result.data[0]
        return CheckpointState(
            status=SyncStatus(row.get("status") or SyncStatus.IDLE.value),
            queued=row.get("queued") or 0,
            processed=row.get("processed") or 0,
            errors=row.get("errors") or 0,
            started_at=_parse_timestamp(row.get("started_at")),
            finished_at=_parse_timestamp(row.get("finished_at")),
        )

    async def save_checkpoint(self, state: CheckpointState) -> None:
        payload = {
            "account_id": self.account_id,
            "status": state.status.value,
            "queued": state.queued,
            "processed": state.processed,
            "errors": state.errors,
            "started_at": state.started_at.isoformat() if state.started_at else None,
            "finished_at": state.finished_at.isoformat() if state.finished_at else None,
        }
        await self._execute(
            "save_checkpoint",
            lambda: self.supabase.table(CHECKPOINT_TABLE).upsert(payload, on_conflict="account_id")
        )


def _record_to_row(record: IngestedMessageRecord) -> Dict[str, Any]:
    """Map a record onto sent_emails columns."""
    return {
        "account_id": record.account_id,
        "id": record.id,
        "thread_id": record.conversation_id or None,
        "subject": record.subject,
        "from_address": record.sender,
        "to_address": record.recipient,
        "date": record.date.isoformat() if record.date else None,
        "body": record.body,
        "labels": record.labels,
        "embedding": record.embedding,
        "has_embedding": bool(record.embedding),
        "is_sent": record.is_sent,
        "is_reply": record.is_reply,
    }
