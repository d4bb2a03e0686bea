"""
Gmail sent-mail provider
Lists historical sent messages through the Gmail REST API and normalizes
them into MailMessage
"""
import asyncio
import base64
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import httpx

from mailsync.core.circuit_breakers import with_retry
from mailsync.models.schemas.sync import MailMessage
from mailsync.services.sync.errors import MailFetchError
from mailsync.services.sync.oauth import get_gmail_token_via_nango

logger = logging.getLogger(__name__)

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages"

# Gmail API rate limits: fetch message details this many at a time
DETAIL_FETCH_CONCURRENCY = 10


# ============================================================================
# NORMALIZATION
# ============================================================================

def decode_base64url(data: str) -> str:
    """Decode Gmail's base64url payload data to text."""
    if not data:
        return ""
    # Gmail uses base64url encoding (replaces + with - and / with _)
    data = data.replace("-", "+").replace("_", "/")
    padding = len(data) % 4
    if padding:
        data += "=" * (4 - padding)
    return base64.b64decode(data).decode("utf-8", errors="replace")


def _find_part(payload: Dict[str, Any], mime_type: str) -> Optional[Dict[str, Any]]:
    """Depth-first search for the first part with a body of the given type."""
    if payload.get("mimeType") == mime_type and payload.get("body", {}).get("data"):
        return payload
    for part in payload.get("parts", []) or []:
        found = _find_part(part, mime_type)
        if found:
            return found
    return None


def extract_body(payload: Dict[str, Any]) -> str:
    """Prefer text/plain, fall back to text/html, then the top-level body."""
    for mime_type in ("text/plain", "text/html"):
        part = _find_part(payload, mime_type)
        if part:
            return decode_base64url(part["body"]["data"])
    return decode_base64url(payload.get("body", {}).get("data", ""))


def _parse_date(date_header: str, internal_date: Optional[str]) -> Optional[datetime]:
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except (TypeError, ValueError):
            logger.debug(f"Unparseable Date header: {date_header!r}")
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except (TypeError, ValueError):
            return None
    return None


def normalize_gmail_message(gmail_record: Dict[str, Any]) -> MailMessage:
    """
    Normalize a Gmail API message (format=full) into a MailMessage.

    Gmail message structure:
    {
        "id": "18c3f8a9...",
        "threadId": "18c3f8a9...",
        "labelIds": ["SENT"],
        "internalDate": "1704067200000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [{"name": "Subject", "value": "..."}, ...],
            "parts": [{"mimeType": "text/plain", "body": {"data": "..."}}]
        }
    }
    """
    payload = gmail_record.get("payload", {}) or {}
    headers = {
        h.get("name", "").lower(): h.get("value", "")
        for h in payload.get("headers", []) or []
    }

    return MailMessage(
        id=gmail_record["id"],
        conversation_id=gmail_record.get("threadId", ""),
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        recipient=headers.get("to", ""),
        date=_parse_date(headers.get("date", ""), gmail_record.get("internalDate")),
        body=extract_body(payload),
        labels=gmail_record.get("labelIds", []) or [],
    )


# ============================================================================
# PROVIDER
# ============================================================================

class GmailSentMailProvider:
    """
    Mail provider for one connected Gmail account.

    Args:
        http_client: Shared async HTTP client
        connection_id: Nango connection ID for the account
        provider_key: Nango provider configuration key
    """

    def __init__(self, http_client: httpx.AsyncClient, connection_id: str, provider_key: str):
        self.http_client = http_client
        self.connection_id = connection_id
        self.provider_key = provider_key

    async def fetch_sent_messages(self, limit: int) -> List[MailMessage]:
        """
        Fetch up to `limit` most recent sent messages.

        Listing failures are fatal (MailFetchError). A message whose detail
        fetch fails is skipped; it will be listed again next cycle.
        """
        try:
            access_token = await get_gmail_token_via_nango(
                self.http_client, self.provider_key, self.connection_id
            )
            message_ids = await self._list_sent_ids(access_token, limit)
        except MailFetchError:
            raise
        except httpx.HTTPStatusError as e:
            raise MailFetchError(
                f"Gmail list failed: {e.response.status_code} - {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise MailFetchError(f"Gmail unreachable: {e}") from e
        except ValueError as e:
            raise MailFetchError(f"Invalid JSON from Gmail list: {e}") from e

        if not message_ids:
            return []

        messages: List[MailMessage] = []
        for i in range(0, len(message_ids), DETAIL_FETCH_CONCURRENCY):
            chunk = message_ids[i:i + DETAIL_FETCH_CONCURRENCY]
            results = await asyncio.gather(
                *(self._fetch_one(access_token, message_id) for message_id in chunk)
            )
            messages.extend(m for m in results if m is not None)

        logger.info(f"📬 Fetched {len(messages)}/{len(message_ids)} sent messages from Gmail")
        return messages

    @with_retry(max_attempts=3, min_wait=1, max_wait=5, retry_on=(httpx.TransportError,))
    async def _list_sent_ids(self, access_token: str, limit: int) -> List[str]:
        ids: List[str] = []
        page_token = None

        while len(ids) < limit:
            params = {"q": "in:sent", "maxResults": min(500, limit - len(ids))}
            if page_token:
                params["pageToken"] = page_token

            response = await self.http_client.get(
                GMAIL_API_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                params=params
            )
            response.raise_for_status()
            data = response.json()

            ids.extend(m["id"] for m in data.get("messages", []) or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return ids[:limit]

    async def _fetch_one(self, access_token: str, message_id: str) -> Optional[MailMessage]:
        try:
            response = await self.http_client.get(
                f"{GMAIL_API_URL}/{message_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                params={"format": "full"}
            )
            response.raise_for_status()
            return normalize_gmail_message(response.json())
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(f"Skipping Gmail message {message_id}: {e}")
            return None
