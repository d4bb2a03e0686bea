"""
Hugging Face Inference embedding adapter
Calls the HF router feature-extraction endpoint over httpx
"""
import logging
from typing import Any, List, Optional

import httpx

from mailsync.services.sync.adapters import EmbeddingPacing
from mailsync.services.sync.errors import EmbeddingError

logger = logging.getLogger(__name__)

HF_ROUTER_URL = "https://router.huggingface.co/hf-inference/models"

# HF inference rejects long inputs for small models
MAX_INPUT_CHARS = 512

HUGGINGFACE_PACING = EmbeddingPacing(concurrency=3, inter_batch_delay=0.5)


def parse_embedding_response(payload: Any) -> List[float]:
    """
    Accept the response shapes HF returns for feature extraction:
    [floats], [[floats]] (batch of one), or {"embedding": [floats]}.
    """
    if isinstance(payload, list) and payload:
        if isinstance(payload[0], list):
            return [float(x) for x in payload[0]]
        if isinstance(payload[0], (int, float)):
            return [float(x) for x in payload]
    if isinstance(payload, dict) and isinstance(payload.get("embedding"), list):
        return [float(x) for x in payload["embedding"]]
    raise EmbeddingError(f"Unexpected Hugging Face response format: {str(payload)[:100]}")


class HuggingFaceEmbeddingAdapter:
    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        model: str = "BAAI/bge-small-en-v1.5",
        pacing: EmbeddingPacing = HUGGINGFACE_PACING
    ):
        if not api_key:
            raise ValueError("EMBEDDING_API_KEY must be set to use Hugging Face embeddings")
        self.api_key = api_key
        self.http_client = http_client
        self.model = model
        self._pacing = pacing

    @property
    def pacing(self) -> EmbeddingPacing:
        return self._pacing

    async def embed(self, text: str) -> List[float]:
        url = f"{HF_ROUTER_URL}/{self.model}"
        body = {
            "inputs": text[:MAX_INPUT_CHARS],
            "options": {"wait_for_model": True},
        }

        try:
            response = await self.http_client.post(
                url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error(f"Hugging Face embedding failed: {e.response.status_code} - {detail}")
            raise EmbeddingError(f"Hugging Face API error {e.response.status_code}: {detail}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Hugging Face request failed: {e}") from e

        return parse_embedding_response(payload)


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)[:200]
    return str(data)[:200]
