"""
Shared fixtures for the sent-mail sync tests.

In-memory stand-ins for the record store, mail provider, and embedding
adapter so the coordinator can be exercised end to end without Supabase,
Gmail, or a model.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

import pytest

from mailsync.models.schemas.sync import (
    AggregateCounts,
    CheckpointState,
    IngestedMessageRecord,
    MailMessage,
)
from mailsync.services.sync.adapters import EmbeddingPacing
from mailsync.services.sync.batch import BatchProcessor, RetryPolicy
from mailsync.services.sync.errors import EmbeddingError, MailFetchError
from mailsync.services.sync.orchestration.mail_sync import SyncCoordinator
from mailsync.services.sync.persistence import embed_and_store

ACCOUNT_ID = "acct-123"
FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeRecordStore:
    """Dict-backed record store that keeps a log of checkpoint writes."""

    def __init__(self, checkpoint: Optional[CheckpointState] = None):
        self.records: Dict[str, IngestedMessageRecord] = {}
        self.checkpoint = checkpoint or CheckpointState()
        self.checkpoint_writes: List[CheckpointState] = []
        self.upsert_calls = 0
        # message id -> exceptions raised by the next upserts of that id
        self.upsert_failures: Dict[str, List[Exception]] = {}

    async def list_ingested_ids(self) -> Set[str]:
        return set(self.records)

    async def upsert_message(self, record: IngestedMessageRecord) -> None:
        self.upsert_calls += 1
        pending = self.upsert_failures.get(record.id)
        if pending:
            raise pending.pop(0)
        self.records[record.id] = record

    async def load_checkpoint(self) -> CheckpointState:
        return self.checkpoint

    async def save_checkpoint(self, state: CheckpointState) -> None:
        self.checkpoint = state
        self.checkpoint_writes.append(state)

    async def aggregate_counts(self) -> AggregateCounts:
        with_embedding = sum(1 for r in self.records.values() if r.embedding)
        return AggregateCounts(total=len(self.records), with_embedding=with_embedding)

    async def latest_message_date(self) -> Optional[datetime]:
        dates = [r.date for r in self.records.values() if r.date]
        return max(dates) if dates else None


class FakeMailProvider:
    """Returns a fixed list of sent messages, newest first."""

    def __init__(self, messages: Iterable[MailMessage], error: Optional[Exception] = None):
        self.messages = list(messages)
        self.error = error
        self.calls: List[int] = []

    async def fetch_sent_messages(self, limit: int) -> List[MailMessage]:
        self.calls.append(limit)
        if self.error:
            raise self.error
        return self.messages[:limit]


class FakeEmbedder:
    """Deterministic embedder; subjects in `failing_subjects` raise EmbeddingError."""

    def __init__(self, pacing: Optional[EmbeddingPacing] = None, failing_subjects: Optional[Set[str]] = None):
        self._pacing = pacing or EmbeddingPacing(concurrency=5)
        self.failing_subjects = failing_subjects or set()
        self.calls = 0

    @property
    def pacing(self) -> EmbeddingPacing:
        return self._pacing

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        subject = text.split("\n", 1)[0]
        if subject in self.failing_subjects:
            raise EmbeddingError(f"embedding failed for {subject!r}")
        return [float(len(text)), 0.5, 0.25]


def make_messages(count: int, prefix: str = "msg") -> List[MailMessage]:
    """`count` sent messages, newest first, with distinct subjects."""
    return [
        MailMessage(
            id=f"{prefix}-{i}",
            conversation_id=f"thread-{i}",
            subject=f"Subject {prefix} {i}",
            sender="me@example.com",
            recipient="you@example.com",
            date=FIXED_NOW - timedelta(hours=i),
            body=f"<p>Body of message {i}</p>",
        )
        for i in range(count)
    ]


def build_coordinator(
    store: FakeRecordStore,
    provider: FakeMailProvider,
    embedder: Optional[FakeEmbedder] = None,
    batch_size: int = 15,
    lease_factory=None,
) -> SyncCoordinator:
    embedder = embedder or FakeEmbedder()

    async def handler(message: MailMessage):
        return await embed_and_store(store, embedder, ACCOUNT_ID, message, max_body_chars=2000)

    processor = BatchProcessor(
        handler=handler,
        pacing=embedder.pacing,
        retry_policy=RetryPolicy(max_attempts=2, backoff_seconds=0),
    )
    return SyncCoordinator(
        account_id=ACCOUNT_ID,
        store=store,
        provider=provider,
        batch_processor=processor,
        batch_size=batch_size,
        lease_factory=lease_factory,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def fetch_error() -> MailFetchError:
    return MailFetchError("Gmail unreachable: connection reset")
