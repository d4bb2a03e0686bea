"""
Rate Limiting Middleware
Keeps sync triggers from hammering Gmail and the embedding provider (slowapi)

RATE LIMITS:
- Global: 100 requests/minute per key (default)
- Sync cycle: 60/minute per account
- Background sync enqueue: 20/minute per account
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from mailsync.core.config import settings

logger = logging.getLogger(__name__)


def rate_limit_key_func(request: Request) -> str:
    """
    Limit per account for account-scoped routes, per IP otherwise.

    A user mashing "sync" across tabs shares one bucket for their account.
    """
    account_id = request.path_params.get("account_id")
    if account_id:
        return f"account:{account_id}"

    ip = get_remote_address(request)
    logger.debug(f"Rate limit key: ip={ip}")
    return f"ip:{ip}"


limiter = Limiter(
    key_func=rate_limit_key_func,
    default_limits=["100/minute"],
    storage_uri=settings.redis_url or "memory://",
)
