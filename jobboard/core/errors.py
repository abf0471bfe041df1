"""
Service-layer exceptions and the app-wide fallback handler.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class JobBoardError(Exception):
    """Base class for errors raised by services."""


class PaymentError(JobBoardError):
    """Payment gateway misconfigured or rejected the request."""


class NotificationError(JobBoardError):
    """A delivery channel could not send."""


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
