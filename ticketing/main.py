import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticketing.api import checkout, orders
from ticketing.config import settings
from ticketing.db_init import init_db
from ticketing.errors import CheckoutError
from ticketing.webhooks import stripe_webhook

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("ticketing.startup")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _get_cors_origins(cors_raw: str) -> list[str]:
    return [origin.strip() for origin in cors_raw.split(",") if origin.strip()]


def _validate_database_url_for_runtime(database_url: str) -> None:
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    postgres_schemes = {"postgres", "postgresql", "postgresql+psycopg"}

    if not scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or postgresql+psycopg://).")
    if scheme == "sqlite":
        return
    if scheme not in postgres_schemes:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{scheme}' "
            "(expected postgresql:// or postgresql+psycopg://)."
        )
    if not parsed.hostname:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not parsed.path.lstrip("/"):
        raise RuntimeError("DATABASE_URL is missing database name in path.")


def _validate_required_env_for_runtime() -> None:
    errors = []
    warnings = []

    if not settings.JWT_SECRET.strip():
        errors.append("JWT_SECRET is required.")

    if not settings.STRIPE_SECRET_KEY:
        warnings.append("STRIPE_SECRET_KEY is not set; checkout sessions cannot be created.")
    if not settings.STRIPE_WEBHOOK_SECRET:
        warnings.append("STRIPE_WEBHOOK_SECRET is not set; Stripe webhooks will be rejected.")

    for name in ("STRIPE_SUCCESS_URL", "STRIPE_CANCEL_URL"):
        if not _is_http_url(getattr(settings, name)):
            errors.append(f"{name} must be an absolute http(s) URL")

    if settings.STRIPE_TIMEOUT_SECONDS <= 0:
        errors.append("STRIPE_TIMEOUT_SECONDS must be positive.")
    if settings.MAX_TICKETS_PER_ORDER < 1:
        errors.append("MAX_TICKETS_PER_ORDER must be at least 1.")

    origins = _get_cors_origins(settings.CORS_ORIGINS)
    invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
    if invalid_origins:
        errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if warnings:
        logger.warning("Startup environment warnings: %s", " | ".join(warnings))

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup initiated.")
    try:
        _validate_database_url_for_runtime(settings.DATABASE_URL)
        _validate_required_env_for_runtime()
        init_db()
    except Exception as exc:
        logger.exception("Application startup failed: %s", str(exc))
        raise
    logger.info("Application startup completed successfully.")
    yield


app = FastAPI(
    title="Ticket Checkout API",
    description=(
        "Ticket checkout and Stripe payment reconciliation. "
        "Protected endpoints expect a bearer JWT issued by the auth service."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Checkout", "description": "Start checkout and sync payment status (requires auth)."},
        {"name": "Orders", "description": "Read my orders (requires auth)."},
        {"name": "Webhooks", "description": "Called by Stripe."},
    ],
)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(stripe_webhook.router, prefix="/webhooks", tags=["Webhooks"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Ticket Checkout API"}


@app.get("/health")
def health():
    return {"status": "ok"}
