from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import html
import logging

from storefront.shared.utils import settings, ErrorResponse

logger = logging.getLogger(__name__)

# --- Rate Limiting ---
CATALOG_LIMIT = "60/minute"
PAYMENT_LIMIT = "10/minute"
LOGIN_LIMIT = "5/minute"

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        f"Rate limit hit: {exc.detail}",
        extra={"path": request.url.path, "request_id": getattr(request.state, "request_id", None)},
    )
    body = ErrorResponse(message=f"Too many requests, limit is {exc.detail}").model_dump(exclude_none=True)
    return JSONResponse(status_code=429, content=body)

def setup_rate_limiting(app: FastAPI):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# --- Security Headers Middleware ---
# Stripe's scripts and frames are needed by the checkout page
CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' https://js.stripe.com; "
    "frame-src https://js.stripe.com https://hooks.stripe.com; "
    "connect-src 'self' https://api.stripe.com; "
    "img-src 'self' data: https:; "
    "object-src 'none'; frame-ancestors 'none';"
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

# --- Input Sanitization ---
def sanitize_input(text: str) -> str:
    """
    Trim and HTML-escape free text before it is stored and echoed back.
    Already-escaped text comes out unchanged, so a value can pass through
    more than one boundary.
    """
    if not isinstance(text, str):
        return text
    return html.escape(html.unescape(text.strip()))
