"""
Global Error Handler Middleware
Last line of defence for exceptions that escape the sync routes
"""
import logging
from typing import Dict, Type

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mailsync.services.sync.errors import (
    MailFetchError,
    MailSyncError,
    RecordStoreError,
    SyncAlreadyRunningError,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases
SYNC_ERROR_STATUS: Dict[Type[MailSyncError], int] = {
    SyncAlreadyRunningError: 409,
    MailFetchError: 502,
    RecordStoreError: 503,
}


def status_for(exc: Exception) -> int:
    for error_type, status_code in SYNC_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Turns unhandled exceptions into JSON responses.
    Known sync failures keep their status code; anything else is a 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            status_code = status_for(exc)
            logger.log(
                logging.ERROR if status_code == 500 else logging.WARNING,
                f"{type(exc).__name__} escaped {request.method} {request.url.path}: {exc}",
                exc_info=status_code == 500,
                extra={"path": request.url.path, "method": request.method}
            )

            return JSONResponse(
                status_code=status_code,
                content={
                    "detail": str(exc) if isinstance(exc, MailSyncError) else "Internal server error",
                    "error_type": type(exc).__name__,
                    "path": request.url.path
                }
            )
