"""
Centralized exception handlers for the wallet API.

Design:
    - A single generic handler catches all BaseAppError subclasses.
    - HTTP status codes come from the exception's `http_status_code` attribute.
    - Client responses use `to_safe_dict()`; internal details are logged, not sent.
    - Validation rejections and insufficient funds are expected outcomes of
      the Transact screen, so 4xx responses log at WARNING.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pnd_wallet.core.exceptions import BaseAppError
import logging

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: BaseAppError) -> JSONResponse:
    """
    Generic handler for all BaseAppError subclasses.

    - Logs full internal details (to_dict) for debugging.
    - Returns sanitized response (to_safe_dict) to the client.
    """
    if exc.http_status_code >= 500:
        level = logging.ERROR
    elif exc.http_status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    summary = f"[{exc.__class__.__name__}] {exc.message}"
    reference = getattr(exc, "reference", None)
    if reference:
        summary += f" (reference={reference})"
    logger.log(level, summary, extra={"error_details": exc.to_dict()})

    headers = None
    if exc.http_status_code == 503:
        headers = {"Retry-After": "1"}

    return JSONResponse(
        status_code=exc.http_status_code,
        content=exc.to_safe_dict(),
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI):
    """
    Register the single generic exception handler.

    Because BaseAppError is the base class, this catches all subclasses
    (TransferValidationError, PartyNotFoundError, StorageError, etc.)
    automatically.
    """
    app.add_exception_handler(BaseAppError, app_exception_handler)
