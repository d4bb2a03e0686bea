"""
Local sentence-transformers embedding adapter
CPU-bound and unthrottled: one batch runs fully concurrent, no pacing delay
"""
import asyncio
import logging
import threading
from typing import List

from mailsync.services.sync.adapters import EmbeddingPacing
from mailsync.services.sync.errors import EmbeddingError

logger = logging.getLogger(__name__)


class LocalEmbeddingAdapter:
    """
    Mean-pooled, normalized embeddings from a local model.
    The model loads lazily on first use and is shared across calls.
    """

    def __init__(self, model_name: str, batch_size: int):
        self.model_name = model_name
        self._pacing = EmbeddingPacing(concurrency=batch_size, inter_batch_delay=0.0)
        self._model = None
        self._model_lock = threading.Lock()

    @property
    def pacing(self) -> EmbeddingPacing:
        return self._pacing

    def _load_model(self):
        with self._model_lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info(f"Loading local embedding model {self.model_name}")
                self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, text: str) -> List[float]:
        model = self._load_model()
        vector = model.encode(text, normalize_embeddings=True)
        return [float(x) for x in vector]

    async def embed(self, text: str) -> List[float]:
        try:
            return await asyncio.to_thread(self._encode, text)
        except ImportError as e:
            raise EmbeddingError("Install sentence-transformers to use local embeddings") from e
        except Exception as e:
            logger.error(f"Local embedding failed: {e}")
            raise EmbeddingError(f"Local embedding failed: {e}") from e
