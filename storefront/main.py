from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime

from storefront.shared.utils import (
    get_db_client, settings, AppException, ErrorResponse, HealthResponse
)
from storefront.shared.logging_config import setup_logging, RequestLoggingMiddleware
from storefront.shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware
from storefront import auth
from storefront.products import routes as product_routes
from storefront.products.store import ProductStore
from storefront.orders import routes as order_routes
from storefront.orders.store import OrderStore
from storefront.payments import routes as payment_routes

SERVICE_NAME = "storefront"
VERSION = "1.0.0"

# Setup Logging
logger = setup_logging(SERVICE_NAME)

app = FastAPI(title="Lolipop Wear API", version=VERSION)

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.DATABASE_NAME]
    # Indexes
    await ProductStore(app.mongodb.products).ensure_indexes()
    await OrderStore(app.mongodb.orders).ensure_indexes()

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Error Handling ---

def error_response(status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    body = ErrorResponse(message=message, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    message = exc.detail
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc.detail}",
            extra={"request_id": getattr(request.state, "request_id", None), "path": request.url.path},
        )
        if settings.ENVIRONMENT == "production":
            message = exc.public_message
    return error_response(exc.status_code, message, getattr(exc, "fields", None) or None, exc.headers)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = []
    for error in exc.errors():
        name = ".".join(str(part) for part in error["loc"] if part != "body")
        if name and name not in fields:
            fields.append(name)
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        f"Invalid or missing fields: {', '.join(fields) or 'body'}",
        fields,
    )

# --- Routes ---

app.include_router(auth.router)
app.include_router(product_routes.router)
# Registered before the orders router so the literal path wins over /{order_id}
app.include_router(payment_routes.router)
app.include_router(order_routes.router)

@app.get("/")
async def read_root():
    return {
        "message": "Welcome to Lolipop Wear API",
        "endpoints": {
            "products": "/api/products",
            "orders": "/api/orders",
        },
    }

@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except Exception:
        db_status = "disconnected"

    payments_status = "configured" if settings.STRIPE_SECRET_KEY else "not configured"

    if db_status != "connected":
        logger.error(f"Health Check Failed: DB={db_status}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service Unhealthy: DB={db_status}"
        )

    return HealthResponse(
        service=SERVICE_NAME,
        status="healthy",
        timestamp=datetime.utcnow(),
        version=VERSION,
        database=db_status,
        dependencies={"stripe": payments_status}
    )

def run():
    import uvicorn
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=5000)
