# ring_history/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, and all routers.

The Ring API client is owned by the host process: call
crawl_service.configure_crawler(api) before serving, otherwise the crawl
and cloud endpoints answer 503.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from ring_history.routers import cloud, crawl, health
from ring_history.database import create_tables
from ring_history.config import settings
from ring_history.services import crawl_service
from ring_history.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Ring History API",
    description="Historic Ring cloud events, video metadata and device history, crawled and cached locally.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(crawl.router,  prefix="/api/v1", tags=["🕸️  Historic Crawl"])
app.include_router(cloud.router,  prefix="/api/v1", tags=["☁️  Cloud History"])
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Ring History backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info("📖 API docs at /docs")

    crawler = crawl_service.get_crawler()
    if crawler is None:
        logger.warning("⚠️  No Ring API client configured — crawl and cloud endpoints will return 503")
    elif crawler.config.enabled:
        await crawler.start()
    else:
        logger.info("Historic crawl disabled (CRAWL_ENABLED=false); start it via POST /api/v1/crawl/start")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Ring History backend shutting down...")
    crawler = crawl_service.get_crawler()
    if crawler is not None:
        crawler.stop()
