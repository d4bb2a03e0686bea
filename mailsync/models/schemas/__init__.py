"""
Pydantic Schemas
All request/response models for API endpoints
"""

# Health check schemas
from .health import HealthResponse

# Sync schemas
from .sync import (
    AggregateCounts,
    BatchResult,
    CheckpointState,
    IngestedMessageRecord,
    MailMessage,
    StatusSnapshot,
    SyncCycleResult,
    SyncQueuedResponse,
    SyncStatus,
)

__all__ = [
    # Health
    "HealthResponse",
    # Sync
    "AggregateCounts",
    "BatchResult",
    "CheckpointState",
    "IngestedMessageRecord",
    "MailMessage",
    "StatusSnapshot",
    "SyncCycleResult",
    "SyncQueuedResponse",
    "SyncStatus",
]
