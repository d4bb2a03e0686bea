"""
Dependency Injection
Provides reusable dependencies for FastAPI routes and background jobs

DEPENDENCIES:
- Supabase client (sent-mail records + checkpoints)
- Redis client (sync lease; optional for local dev)
- HTTP client (Nango, Gmail, Hugging Face)
- Sync coordinator wiring for one account
"""
import logging
from functools import partial
from typing import Optional

import httpx
import redis
from supabase import Client, create_client

from mailsync.core.config import Settings, settings
from mailsync.services.embeddings import get_embedding_adapter
from mailsync.services.sync.batch import BatchProcessor, RetryPolicy
from mailsync.services.sync.database import SupabaseRecordStore
from mailsync.services.sync.lock import SyncLease
from mailsync.services.sync.orchestration.mail_sync import SyncCoordinator
from mailsync.services.sync.persistence import embed_and_store
from mailsync.services.sync.providers.gmail import GmailSentMailProvider

logger = logging.getLogger(__name__)

# ============================================================================
# GLOBAL CLIENTS (initialized once, reused across requests)
# ============================================================================

_supabase_client: Optional[Client] = None
_redis_client: Optional[redis.Redis] = None
_http_client: Optional[httpx.AsyncClient] = None


# ============================================================================
# INITIALIZATION (called on app startup)
# ============================================================================

def create_supabase_client() -> Client:
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_service_key)


def create_redis_client() -> Optional[redis.Redis]:
    """Connect to Redis, or return None when it is not configured or unreachable."""
    if not settings.redis_url:
        logger.warning("⚠️  REDIS_URL not set - sync runs without a per-account lease")
        return None
    try:
        client = redis.from_url(settings.redis_url, decode_responses=True, socket_connect_timeout=5)
        client.ping()
        return client
    except redis.RedisError as e:
        logger.warning(f"⚠️  Redis not available: {e}")
        logger.warning("⚠️  Sync lease and background jobs disabled (OK for local dev)")
        return None


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(60.0),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=20)
    )


async def initialize_clients():
    """
    Initialize all global clients on app startup.

    Called from main.py lifespan event.
    """
    global _supabase_client, _redis_client, _http_client

    logger.info("Initializing global clients...")

    try:
        _supabase_client = create_supabase_client()
        logger.info("✅ Supabase client initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        raise

    _redis_client = create_redis_client()
    if _redis_client:
        logger.info("✅ Redis client initialized")

    _http_client = create_http_client()
    logger.info("✅ HTTP client initialized")

    logger.info("✅ All clients initialized successfully")


async def shutdown_clients():
    """
    Shutdown all global clients on app shutdown.

    Called from main.py lifespan event.
    """
    global _supabase_client, _redis_client, _http_client

    logger.info("Shutting down global clients...")

    if _http_client:
        await _http_client.aclose()
        logger.info("✅ HTTP client closed")

    if _redis_client:
        try:
            _redis_client.close()
            logger.info("✅ Redis client closed")
        except redis.RedisError as e:
            logger.error(f"Error closing Redis: {e}")

    # Supabase doesn't need explicit cleanup
    _supabase_client = None
    _redis_client = None
    _http_client = None

    logger.info("✅ All clients shutdown complete")


# ============================================================================
# DEPENDENCY FUNCTIONS (injected into routes)
# ============================================================================

def get_supabase() -> Client:
    """
    Get Supabase client for dependency injection.

    Returns:
        Supabase client (service role)
    """
    if _supabase_client is None:
        logger.error("Supabase client not initialized")
        raise RuntimeError("Supabase client not initialized. Call initialize_clients() first.")

    return _supabase_client


def get_redis() -> Optional[redis.Redis]:
    """Get Redis client, or None when running without Redis."""
    return _redis_client


def get_http_client() -> httpx.AsyncClient:
    if _http_client is None:
        logger.error("HTTP client not initialized")
        raise RuntimeError("HTTP client not initialized. Call initialize_clients() first.")

    return _http_client


# ============================================================================
# SYNC WIRING
# ============================================================================

def build_sync_coordinator(
    account_id: str,
    supabase: Client,
    http_client: httpx.AsyncClient,
    redis_client: Optional[redis.Redis],
    config: Settings = settings
) -> SyncCoordinator:
    """
    Wire a SyncCoordinator for one account.

    The account id doubles as the Nango connection id for its Gmail
    connection. Pacing comes from the active embedding adapter.
    """
    store = SupabaseRecordStore(supabase, account_id)
    provider = GmailSentMailProvider(http_client, account_id, config.nango_provider_key_gmail)
    embedder = get_embedding_adapter(config, http_client)

    batch_processor = BatchProcessor(
        handler=partial(embed_and_store, store, embedder, account_id, max_body_chars=config.sync_body_max_chars),
        pacing=embedder.pacing,
        retry_policy=RetryPolicy(max_attempts=2, backoff_seconds=config.sync_retry_backoff_seconds)
    )

    lease_factory = None
    if redis_client is not None:
        lease_factory = partial(SyncLease, redis_client, account_id, config.sync_lease_ttl_seconds)

    return SyncCoordinator(
        account_id=account_id,
        store=store,
        provider=provider,
        batch_processor=batch_processor,
        batch_size=config.sync_batch_size,
        lease_factory=lease_factory
    )


def get_record_store(account_id: str, supabase: Client) -> SupabaseRecordStore:
    return SupabaseRecordStore(supabase, account_id)
