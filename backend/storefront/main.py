"""
Storefront Payments — FastAPI Application Entry Point

Aggregates all routers, configures middleware and error handling,
and initializes the database on startup.
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.config import get_settings
from storefront.database import SessionLocal, init_db
from storefront.exceptions import PaymentError
from storefront.logging_config import setup_logging
from storefront.routes import payment_router, admin_router
from storefront.schemas.schemas import HealthResponse
from storefront.utils.payment_errors import describe

settings = get_settings()
logger = logging.getLogger(__name__)

INITIATE_PATH = "/api/payment/initiate"

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Online credit top-up for the storefront: gateway checkout initiation, "
        "instant payment notifications, and exactly-once balance crediting."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize logging and database tables, log boot info."""
    setup_logging()
    init_db()

    logger.info(
        "%s v%s | gateway mode: %s | gateway keys: %s | database: %s | debug: %s",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.GATEWAY_MODE,
        "[OK] Loaded" if settings.GATEWAY_PUBLIC_KEY and settings.GATEWAY_SECRET_KEY else "[!] Missing",
        settings.DATABASE_URL.split("@")[-1],
        settings.DEBUG,
    )


# ─── Error Handling ──────────────────────────────────────────────────
@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    """Convert payment failures to the structured buyer-facing body."""
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "paymentError": describe(exc.code),
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed initiate bodies get the same structured shape as a bad amount."""
    if request.url.path != INITIATE_PATH:
        return await request_validation_exception_handler(request, exc)
    logger.info("%s %s -> INVALID_AMOUNT (%s)", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid payment request",
            "paymentError": describe("INVALID_AMOUNT"),
        },
    )


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("-> %s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(payment_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"], response_model=HealthResponse)
def deep_health():
    """Detailed health check including dependency statuses."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("Health check database error: %s", e)
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        database="connected" if db_ok else "disconnected",
        gateway="configured" if settings.GATEWAY_PUBLIC_KEY and settings.GATEWAY_SECRET_KEY else "unconfigured",
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
        version=settings.APP_VERSION,
    )
