"""
OpenAI embedding adapter
Remote, rate-limited: small concurrent groups with a pause between them
"""
import logging
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from mailsync.services.sync.adapters import EmbeddingPacing
from mailsync.services.sync.errors import EmbeddingError

logger = logging.getLogger(__name__)

OPENAI_PACING = EmbeddingPacing(concurrency=3, inter_batch_delay=0.5)


class OpenAIEmbeddingAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        client: Optional[AsyncOpenAI] = None,
        pacing: EmbeddingPacing = OPENAI_PACING
    ):
        if not api_key and client is None:
            raise ValueError("OPENAI_API_KEY or EMBEDDING_API_KEY must be set to use OpenAI embeddings")
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self._pacing = pacing

    @property
    def pacing(self) -> EmbeddingPacing:
        return self._pacing

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            logger.error(f"OpenAI embedding failed: {e}")
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e
        return list(response.data[0].embedding)
