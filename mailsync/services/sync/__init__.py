"""
Sent-Mail Sync System
Resumable, checkpointed backfill of a user's sent mail with tone embeddings
"""
from mailsync.services.sync.batch import BatchProcessor, RetryPolicy, is_recoverable_store_error
from mailsync.services.sync.database import SupabaseRecordStore
from mailsync.services.sync.lock import SyncLease
from mailsync.services.sync.orchestration.mail_sync import SyncCoordinator, filter_new_messages
from mailsync.services.sync.persistence import embed_and_store
from mailsync.services.sync.status import get_sync_status

__all__ = [
    "BatchProcessor",
    "RetryPolicy",
    "is_recoverable_store_error",
    "SupabaseRecordStore",
    "SyncLease",
    "SyncCoordinator",
    "filter_new_messages",
    "embed_and_store",
    "get_sync_status",
]
