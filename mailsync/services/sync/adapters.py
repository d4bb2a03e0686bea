"""
Collaborator contracts for the sent-mail sync pipeline

The coordinator and batch processor depend only on these protocols:
- MailProvider: pages of historical sent mail
- RecordStore: ingested records + checkpoint persistence
- EmbeddingAdapter: text -> vector, plus the pacing it needs
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Set, runtime_checkable

from mailsync.models.schemas.sync import (
    AggregateCounts,
    CheckpointState,
    IngestedMessageRecord,
    MailMessage,
)


@dataclass(frozen=True)
class EmbeddingPacing:
    """
    Throughput policy supplied by the active embedding adapter.

    concurrency: embed-and-store calls run at once within a batch
    inter_batch_delay: seconds to sleep between concurrent groups
    """
    concurrency: int
    inter_batch_delay: float = 0.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.inter_batch_delay < 0:
            raise ValueError("inter_batch_delay cannot be negative")


@runtime_checkable
class MailProvider(Protocol):
    async def fetch_sent_messages(self, limit: int) -> List[MailMessage]:
        """
        Return up to `limit` historical sent messages, newest first.
        Safe to call repeatedly with overlapping results.
        Raises MailFetchError on failure.
        """
        ...


@runtime_checkable
class RecordStore(Protocol):
    async def list_ingested_ids(self) -> Set[str]:
        ...

    async def upsert_message(self, record: IngestedMessageRecord) -> None:
        """Idempotent per message id. Atomic per record."""
        ...

    async def load_checkpoint(self) -> CheckpointState:
        """Defaults to an idle, zeroed checkpoint when none was saved."""
        ...

    async def save_checkpoint(self, state: CheckpointState) -> None:
        ...

    async def aggregate_counts(self) -> AggregateCounts:
        ...

    async def latest_message_date(self) -> Optional[datetime]:
        ...


@runtime_checkable
class EmbeddingAdapter(Protocol):
    @property
    def pacing(self) -> EmbeddingPacing:
        ...

    async def embed(self, text: str) -> List[float]:
        """Raises EmbeddingError on provider failure. Never retries on its own behalf."""
        ...
