"""
Sent-mail persistence helpers
Body sanitization, embedding context, and the embed-and-store unit of work
"""
import logging
import re
from typing import Optional

from mailsync.core.config import settings
from mailsync.models.schemas.sync import IngestedMessageRecord, MailMessage
from mailsync.services.sync.adapters import EmbeddingAdapter, RecordStore

logger = logging.getLogger(__name__)

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[\s\S]*?</\1>", re.IGNORECASE)
_TAG_RE = re.compile(r"</?[^>]+>")
_NBSP_RE = re.compile(r"&nbsp;", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_REPLY_PREFIX_RE = re.compile(r"^(re|fwd?):\s*", re.IGNORECASE)


# ============================================================================
# TEXT PREPARATION
# ============================================================================

def sanitize_email_body(text: str, max_length: int) -> str:
    """
    Strip markup from a message body and truncate it.

    Removes <script>/<style> blocks and tags, collapses &nbsp; and whitespace
    runs to single spaces.
    """
    if not text:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = _NBSP_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_length]


def create_email_context(subject: str, body: str) -> str:
    """Text fed to the embedding model for one message."""
    return f"{subject}\n\n{body}".strip()


def is_reply_subject(subject: str) -> bool:
    return bool(_REPLY_PREFIX_RE.match(subject or ""))


# ============================================================================
# EMBED AND STORE
# ============================================================================

async def embed_and_store(
    store: RecordStore,
    embedder: EmbeddingAdapter,
    account_id: str,
    message: MailMessage,
    max_body_chars: Optional[int] = None
) -> IngestedMessageRecord:
    """
    Embed one sent message and upsert its record.

    Embedding and storage are one logical unit: if embedding raises, nothing
    is written and the message stays eligible for a later cycle. An adapter
    returning an empty vector is stored as-is (degraded record).

    Args:
        store: Record store for the account
        embedder: Active embedding adapter
        account_id: Owning account
        message: Message from the mail provider
        max_body_chars: Body truncation limit (defaults to settings)

    Returns:
        The stored record
    """
    limit = max_body_chars or settings.sync_body_max_chars
    body = sanitize_email_body(message.body, limit)

    embedding = await embedder.embed(create_email_context(message.subject, body))
    if not embedding:
        logger.warning(f"Empty embedding for message {message.id}, storing without vector")

    record = IngestedMessageRecord(
        **message.model_dump(exclude={"body"}),
        body=body,
        account_id=account_id,
        embedding=list(embedding),
        is_reply=is_reply_subject(message.subject),
    )
    await store.upsert_message(record)
    logger.debug(f"Stored message {message.id} ({len(record.embedding)} dims)")
    return record
