"""
Request/response logging middleware for the wallet API.

Every request gets an id (echoed back in `X-Request-ID`) so a dashboard error
toast can be matched against the transfer log lines. Admin credentials never
reach the logs: keys and headers are redacted recursively.
"""

import time
import logging
import json
import uuid
from typing import Any, Callable, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pnd_wallet.core.monitoring import error_monitor


SENSITIVE_KEYS: Set[str] = {
    "password", "passwd", "pass",
    "token", "access_token", "refresh_token", "id_token",
    "secret", "api_key", "apikey", "admin_key", "x_admin_key",
    "authorization", "auth",
    "transactionpin", "transaction_pin", "pin", "otp",
    "accountnumber", "account_number", "bvn",
    "session_id", "session", "cookie",
}

SENSITIVE_HEADERS: Set[str] = {
    "authorization", "cookie", "set-cookie",
    "x-admin-key", "x-monitoring-key",
}

# Bodies larger than this are never logged
MAX_LOGGED_BODY_BYTES = 10_000


def _sanitize_value(data: Any, depth: int = 0) -> Any:
    """Recursively redact sensitive data from dicts, lists, and nested structures."""
    if depth > 10:
        return "[DEPTH_LIMIT]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if key.lower() in SENSITIVE_KEYS else _sanitize_value(value, depth + 1)
            for key, value in data.items()
        }

    if isinstance(data, list):
        return [_sanitize_value(item, depth + 1) for item in data]

    return data


def _sanitize_headers(headers: dict) -> dict:
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its outcome with sanitized data."""

    def __init__(self, app, logger_name: str = "pnd_wallet.requests"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        # Read the body once and replay it for the route handlers
        body = await request.body()
        request.state.body = body

        async def receive():
            return {"type": "http.request", "body": body}

        request._receive = receive

        self._log_request(request, request_id)

        try:
            response = await call_next(request)
        except Exception as e:
            error_monitor.log_error(e, {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "process_time": time.time() - start_time,
                "context": "middleware_error",
            })
            raise

        process_time = time.time() - start_time
        self._log_response(request, response, request_id, process_time)
        response.headers["X-Request-ID"] = request_id
        return response

    def _log_request(self, request: Request, request_id: str):
        client_ip = request.client.host if request.client else "unknown"

        self.logger.info(
            f"[{request_id}] {request.method} {request.url.path} - Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": _sanitize_value(dict(request.query_params)),
                "client_ip": client_ip,
            },
        )

        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            try:
                body_json = json.loads(request.state.body.decode())
            except (json.JSONDecodeError, UnicodeDecodeError):
                return
            self.logger.debug(
                f"[{request_id}] Request body: {json.dumps(_sanitize_value(body_json))}"
            )

    def _log_response(self, request: Request, response: Response, request_id: str, process_time: float):
        status_code = response.status_code
        level = logging.INFO if status_code < 400 else logging.WARNING if status_code < 500 else logging.ERROR

        self.logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} - {status_code} - {process_time:.3f}s",
            extra={
                "request_id": request_id,
                "status_code": status_code,
                "process_time": process_time,
                "response_headers": _sanitize_headers(dict(response.headers)),
            },
        )

    def _should_log_body(self, request: Request) -> bool:
        if not request.state.body:
            return False
        return len(request.state.body) <= MAX_LOGGED_BODY_BYTES
