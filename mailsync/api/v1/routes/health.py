"""
Health Check Routes
System status and diagnostics
"""
import logging
from fastapi import APIRouter

from mailsync.core.config import settings
from mailsync.core.dependencies import get_redis
from mailsync.models.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        database="configured" if settings.supabase_url else "not configured",
        queue="connected" if get_redis() is not None else "unavailable",
        embedding_provider=settings.embedding_provider
    )


@router.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "MailSync - Sent-Mail Sync & Tone Embedding API",
        "version": VERSION,
        "description": "Resumable backfill of sent mail with embeddings for tone-matched drafts",
        "endpoints": {
            "health": "/health",
            "sync": {
                "cycle": "/sync/{account_id}/sent",
                "background": "/sync/{account_id}/sent/background",
                "status": "/sync/{account_id}/status"
            }
        }
    }
