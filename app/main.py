"""
Main FastAPI application for the Indicore backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db
from app.routers import ai, chats, health, personalization, pyq
from app.services.ai_providers import available_providers
from app.utils.helpers import utcnow

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


def _check_providers() -> list:
    """Log which AI providers have keys configured.  Never raises."""
    providers = available_providers()
    if "perplexity" in providers:
        logger.info("✓ Perplexity configured (chat, streaming, evaluations)")
    else:
        logger.warning("⚠ PERPLEXITY_API_KEY not set; chat and study tools will fail")

    fallbacks = [p for p in providers if p != "perplexity"]
    if fallbacks:
        logger.info("✓ Fallback providers: %s", ", ".join(fallbacks))
    else:
        logger.warning("⚠ No fallback providers configured; chats keep their numbered names")

    if not settings.OPENAI_API_KEY:
        logger.warning("⚠ OPENAI_API_KEY not set; mains evaluation is unavailable")
    return providers


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Indicore backend …")
    logger.info("=" * 60)

    # 1: Database (required; raises on failure)
    await _check_database()

    # 2: AI providers (optional; logs warnings but continues)
    _check_providers()

    logger.info("=" * 60)
    logger.info("  Indicore backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Indicore backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Indicore API",
    description=(
        "**Indicore** — AI-powered exam preparation assistant for PCS, UPSC "
        "and SSC aspirants.\n\n"
        "Key endpoints:\n"
        "- `POST /api/chat` — create a chat or add a message\n"
        "- `POST /api/ai/chat-stream` — streamed answer\n"
        "- `POST /api/ai/translate` — translate text\n"
        "- `POST /api/ai/generate-vocabulary` — bilingual flashcards\n"
        "- `GET  /api/personalization/chat-insights` — study dashboard\n"
        "- `GET  /api/pyq/archive` — previous year questions\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling from the frontend
    if request.url.path not in ("/api/health", "/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Global exception handler
# ---------------------------------------------------------------------------

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,          prefix="/api/health",          tags=["Health"])
app.include_router(chats.router,           prefix="/api/chat",            tags=["Chats"])
app.include_router(ai.router,              prefix="/api/ai",              tags=["AI"])
app.include_router(personalization.router, prefix="/api/personalization", tags=["Personalization"])
app.include_router(pyq.router,             prefix="/api/pyq",             tags=["PYQ"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: returns basic service info."""
    return {
        "name": "Indicore API",
        "version": "1.0.0",
        "description": "Exam Preparation Assistant Backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "chat": "/api/chat",
            "ai": "/api/ai",
            "personalization": "/api/personalization",
            "pyq": "/api/pyq",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
