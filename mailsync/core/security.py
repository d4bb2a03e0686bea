"""
Security and Authentication
API key authentication for the sync trigger and status endpoints

The sync endpoints are called by the helpdesk backend and its scheduler,
not by browsers, so a shared secret in X-API-Key is sufficient.
"""
import logging
import hmac
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from mailsync.core.config import settings

logger = logging.getLogger(__name__)

api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Depends(api_key_scheme)) -> bool:
    """
    Verify API key for internal callers.

    Uses timing-safe comparison to prevent timing attacks. When API_KEY is
    not configured (local development) every request is accepted.

    Returns:
        True if API key is valid

    Raises:
        HTTPException if API key is invalid or missing
    """
    if not settings.api_key:
        return True

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required (X-API-Key header)"
        )

    # Timing-safe comparison (prevents timing attacks)
    if not hmac.compare_digest(api_key, settings.api_key):
        logger.warning(f"Invalid API key attempt: {api_key[:4]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return True
