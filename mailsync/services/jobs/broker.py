"""
Dramatiq Redis Broker Configuration
Handles the background queue for auto-resumed sent-mail sync jobs
"""
import logging
import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import (
    AgeLimit, Callbacks, Pipelines,
    Retries, ShutdownNotifications
)

from mailsync.core.config import settings

logger = logging.getLogger(__name__)

if not settings.redis_url:
    logger.warning("⚠️  REDIS_URL not set - background jobs use an in-process stub broker")
    broker = StubBroker()
else:
    broker = RedisBroker(
        url=settings.redis_url,
        middleware=[
            AgeLimit(),
            Retries(max_retries=3),
            Callbacks(),
            Pipelines(),
            ShutdownNotifications(),
        ]
    )
    logger.info(f"✅ Redis broker initialized: {settings.redis_url[:20]}...")

dramatiq.set_broker(broker)
