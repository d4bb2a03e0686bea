"""
Sync error taxonomy

Fetch and checkpoint errors abort a cycle. Per-message errors are counted
by the batch processor and never abort a cycle.
"""
from typing import Optional


class MailSyncError(Exception):
    """Base class for all sync pipeline errors."""


class MailFetchError(MailSyncError):
    """Mail provider unreachable, token expired, or listing failed."""


class EmbeddingError(MailSyncError):
    """Embedding provider failed for one message. Not retried within a cycle."""


class RecordStoreError(MailSyncError):
    """Permanent record store failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientStoreError(RecordStoreError):
    """Storage contention expected to clear on an immediate retry."""


class SyncAlreadyRunningError(MailSyncError):
    """Another invocation holds the sync lease for this account."""

    def __init__(self, account_id: str):
        super().__init__(f"Sync already running for account {account_id}")
        self.account_id = account_id
