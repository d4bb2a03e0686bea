"""
Nango API client
Resolves Gmail OAuth access tokens; Nango handles refresh on its side
"""
import logging

import httpx

from mailsync.core.circuit_breakers import with_retry
from mailsync.core.config import settings
from mailsync.services.sync.errors import MailFetchError

logger = logging.getLogger(__name__)

NANGO_BASE_URL = "https://api.nango.dev"


# ============================================================================
# NANGO TOKEN RETRIEVAL
# ============================================================================

@with_retry(max_attempts=3, min_wait=1, max_wait=5, retry_on=(httpx.TransportError,))
async def get_gmail_token_via_nango(
    http_client: httpx.AsyncClient,
    provider_key: str,
    connection_id: str
) -> str:
    """
    Get a Gmail access token via Nango.

    Args:
        http_client: Async HTTP client instance
        provider_key: Nango provider configuration key
        connection_id: Nango connection ID

    Returns:
        Access token string

    Raises:
        MailFetchError: If Nango is misconfigured or rejects the lookup
    """
    if not settings.nango_secret:
        raise MailFetchError("NANGO_SECRET not configured")

    url = f"{NANGO_BASE_URL}/connection/{connection_id}"
    headers = {"Authorization": f"Bearer {settings.nango_secret}"}
    params = {"provider_config_key": provider_key}

    logger.debug(f"Nango token lookup for connection {connection_id} ({provider_key})")

    try:
        response = await http_client.get(url, headers=headers, params=params)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Failed to get Nango token: {e.response.status_code} - {e.response.text[:500]}")
        raise MailFetchError(f"Nango token lookup failed with status {e.response.status_code}") from e
    except ValueError as e:
        logger.error(f"Invalid JSON from Nango: {e}")
        raise MailFetchError(f"Invalid JSON from Nango: {e}") from e

    try:
        return data["credentials"]["access_token"]
    except (KeyError, TypeError) as e:
        raise MailFetchError(f"Nango connection {connection_id} has no access token") from e
