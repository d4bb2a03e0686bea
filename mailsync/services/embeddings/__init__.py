"""
Embedding Adapters
Text -> vector for tone matching; each adapter carries its own pacing
"""
import logging
from functools import lru_cache
from typing import Optional

import httpx

from mailsync.core.config import Settings
from mailsync.services.embeddings.huggingface import HuggingFaceEmbeddingAdapter
from mailsync.services.embeddings.local import LocalEmbeddingAdapter
from mailsync.services.embeddings.openai_embedder import OpenAIEmbeddingAdapter
from mailsync.services.sync.adapters import EmbeddingAdapter

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _local_adapter(model_name: str, batch_size: int) -> LocalEmbeddingAdapter:
    # Shared so the model loads once per process
    return LocalEmbeddingAdapter(model_name=model_name, batch_size=batch_size)


def get_embedding_adapter(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None
) -> EmbeddingAdapter:
    """
    Build the adapter selected by EMBEDDING_PROVIDER.

    Args:
        settings: Application settings
        http_client: Required for the huggingface provider
    """
    provider = settings.embedding_provider

    if provider == "openai":
        return OpenAIEmbeddingAdapter(
            api_key=settings.openai_api_key or settings.embedding_api_key,
            model=settings.openai_embedding_model
        )

    if provider == "huggingface":
        if http_client is None:
            raise ValueError("huggingface embeddings need an HTTP client")
        return HuggingFaceEmbeddingAdapter(
            api_key=settings.embedding_api_key,
            http_client=http_client,
            model=settings.huggingface_embedding_model
        )

    return _local_adapter(settings.local_embed_model, settings.sync_batch_size)


__all__ = [
    "get_embedding_adapter",
    "HuggingFaceEmbeddingAdapter",
    "LocalEmbeddingAdapter",
    "OpenAIEmbeddingAdapter",
]
