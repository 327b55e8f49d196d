from datetime import datetime
from typing import Callable, Dict, Mapping
import json
import logging
import sys
import time
import traceback
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from storefront.shared.utils import settings

# Masked in request logs
SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key", "stripe-signature"}

# Copied from `extra=` onto the JSON line when present
CONTEXT_FIELDS = (
    "request_id", "client", "method", "path", "status_code", "duration_ms", "headers",
    "order_id", "payment_intent_id", "amount", "category", "fields",
)

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

# Not worth an access log line unless they fail
UNLOGGED_PATHS = {"/health"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line. Decimals, datetimes and ObjectIds fall back to str()."""

    def __init__(self, service_name: str, environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
            "service": self.service_name,
            "env": self.environment,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update({name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)})

        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(entry, default=str)


def setup_logging(service_name: str) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service_name, settings.ENVIRONMENT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(service_name)


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {k: ("***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags every request with an X-Request-ID and writes one access line per response."""

    def __init__(self, app: ASGIApp, service_name: str):
        super().__init__(app)
        self.logger = logging.getLogger(f"{service_name}.access")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self.log_request(request, 500, started, exc_info=sys.exc_info())
            raise

        self.log_request(request, response.status_code, started)
        response.headers["X-Request-ID"] = request_id
        return response

    def log_request(self, request: Request, status_code: int, started: float, exc_info=None):
        if status_code < 400 and request.url.path in UNLOGGED_PATHS:
            return

        extra = {
            "request_id": request.state.request_id,
            "client": request.client.host if request.client else None,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        message = f"{request.method} {request.url.path} {status_code}"

        if status_code >= 500:
            # Full headers only when something broke
            extra["headers"] = mask_headers(request.headers)
            self.logger.error(message, extra=extra, exc_info=exc_info)
        elif status_code >= 400:
            self.logger.warning(message, extra=extra)
        else:
            self.logger.info(message, extra=extra)
