"""
Sync Schemas
Checkpoint state, messages, and results for the sent-mail sync pipeline
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncStatus(str, Enum):
    """Lifecycle of a sync job."""
    IDLE = "idle"
    RUNNING = "running"


class CheckpointState(BaseModel):
    """
    Persisted progress of the current sync job for one account.

    Immutable: the coordinator derives new states with model_copy(update=...)
    and writes them through the record store.
    """
    model_config = ConfigDict(frozen=True)

    status: SyncStatus = SyncStatus.IDLE
    queued: int = 0
    processed: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == SyncStatus.RUNNING


class MailMessage(BaseModel):
    """A sent message as returned by the mail provider."""
    id: str
    conversation_id: str = ""
    subject: str = ""
    sender: str = ""
    recipient: str = ""
    date: Optional[datetime] = None
    body: str = ""
    labels: List[str] = Field(default_factory=list)


class IngestedMessageRecord(MailMessage):
    """
    A sent message that passed through the pipeline.
    An empty embedding is a degraded but valid state.
    """
    account_id: str
    embedding: List[float] = Field(default_factory=list)
    is_sent: bool = True
    is_reply: bool = False


class BatchResult(BaseModel):
    """Counts from one Batch Processor run."""
    processed: int = 0
    errors: int = 0
    failed_ids: List[str] = Field(default_factory=list)


class SyncCycleResult(BaseModel):
    """
    Returned by every sync cycle.
    Callers re-invoke the cycle while should_continue is true.
    """
    processed_this_batch: int
    errors_this_batch: int = 0
    total_processed: int
    total_errors: int = 0
    remaining: int
    should_continue: bool


class AggregateCounts(BaseModel):
    """Record store totals for one account."""
    total: int = 0
    with_embedding: int = 0


class StatusSnapshot(BaseModel):
    """Read-only view of sync progress used by status polling."""
    status: SyncStatus
    processing: bool
    queued: int
    processed: int
    errors: int
    pending_estimate: int
    total_stored: int
    with_embeddings: int
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_sync: Optional[datetime] = None


class SyncQueuedResponse(BaseModel):
    """Response for background sync requests."""
    status: str  # "queued"
    account_id: str
    max_messages: int
