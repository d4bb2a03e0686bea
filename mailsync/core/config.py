"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- Supabase holds sent-mail records and per-account sync checkpoints
- Redis backs the Dramatiq queue and the per-account sync lease
- Nango brokers the Gmail OAuth tokens
- Embeddings come from one provider chosen at startup (local/openai/huggingface)
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)

EMBEDDING_PROVIDERS = ("local", "openai", "huggingface")


class Settings(BaseSettings):
    """
    Application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # DATABASE (Supabase)
    # ============================================================================

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service key (backend uses this)")

    # ============================================================================
    # REDIS (job queue + sync lease)
    # ============================================================================

    redis_url: Optional[str] = Field(default=None, description="Redis connection URL")

    # ============================================================================
    # OAUTH (Nango)
    # ============================================================================

    nango_secret: Optional[str] = Field(default=None, description="Nango API secret key")
    nango_provider_key_gmail: str = Field(default="google-mail", description="Nango provider key for Gmail")

    # ============================================================================
    # EMBEDDINGS
    # ============================================================================

    embedding_provider: str = Field(default="local", description="Embedding provider: local/openai/huggingface")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    embedding_api_key: Optional[str] = Field(default=None, description="Hugging Face token (or OpenAI key fallback)")
    openai_embedding_model: str = Field(default="text-embedding-3-small", description="OpenAI embedding model")
    huggingface_embedding_model: str = Field(default="BAAI/bge-small-en-v1.5", description="Hugging Face embedding model")
    local_embed_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2", description="Local sentence-transformers model")

    # ============================================================================
    # SYNC TUNING
    # ============================================================================

    sync_batch_size: int = Field(default=15, description="Messages embedded and stored per sync cycle")
    sync_default_max_messages: int = Field(default=100, description="Default number of sent messages considered per cycle")
    sync_retry_backoff_seconds: float = Field(default=0.2, description="Delay before retrying a recoverable store error")
    sync_lease_ttl_seconds: int = Field(default=300, description="Expiry of the per-account sync lease")
    sync_max_iterations: int = Field(default=50, description="Hard cap on auto-resumed cycles per background job")
    sync_resume_delay_ms: int = Field(default=1000, description="Delay between auto-resumed cycles")
    sync_body_max_chars: int = Field(default=2000, description="Sent-mail bodies are truncated to this length")

    # ============================================================================
    # API KEYS
    # ============================================================================

    api_key: Optional[str] = Field(default=None, description="Shared secret for the X-API-Key header (optional)")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate settings at startup.

        - Embedding provider must be a known one
        - Sync tuning knobs must be positive
        - Warn about missing secrets outside development
        """
        self.embedding_provider = self.embedding_provider.lower()
        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ValueError(
                f"EMBEDDING_PROVIDER must be one of {', '.join(EMBEDDING_PROVIDERS)}, got {self.embedding_provider!r}"
            )

        if self.sync_batch_size < 1:
            raise ValueError("SYNC_BATCH_SIZE must be at least 1")
        if self.sync_max_iterations < 1:
            raise ValueError("SYNC_MAX_ITERATIONS must be at least 1")
        if self.sync_lease_ttl_seconds < 1:
            raise ValueError("SYNC_LEASE_TTL_SECONDS must be at least 1")

        if self.environment == "production":
            if self.debug:
                logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION! This is insecure.")
            if not self.sentry_dsn:
                logger.warning("⚠️  Sentry not configured in production. Error tracking disabled.")

        if not self.nango_secret:
            logger.warning("⚠️  NANGO_SECRET not set. Gmail fetches will fail.")

        logger.info("=" * 80)
        logger.info("MailSync Configuration Loaded")
        logger.info("=" * 80)
        logger.info(f"Environment: {self.environment}")
        logger.info(f"Debug: {self.debug}")
        logger.info(f"Supabase URL: {self.supabase_url}")
        logger.info(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.info(f"Nango: {'✅ Configured' if self.nango_secret else '❌ Not configured'}")
        logger.info(f"Embedding provider: {self.embedding_provider}")
        logger.info(f"Sync batch size: {self.sync_batch_size}")
        logger.info(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.info("=" * 80)

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
