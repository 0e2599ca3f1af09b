# chemdoc/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .database import engine, Base
from . import models  # noqa: F401  registers the ORM tables on Base
from .api.v1 import documents, health, settings as settings_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifecycle events"""
    # Startup
    logger.info(f"Starting up {settings.APP_NAME} {settings.APP_VERSION}...")
    logger.info(f"  - Storage backend: {settings.STORAGE_BACKEND}")
    logger.info(f"  - Text extraction: {settings.TEXT_EXTRACTION_MODE}")
    logger.info(f"  - Extraction fallback: {settings.EXTRACTION_FALLBACK}")

    if settings.STORAGE_BACKEND == "database":
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

    yield

    # Shutdown
    logger.info("Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    description="Turns supplier COA / SDS PDFs into company-branded documents",
    redirect_slashes=False
)

# Request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"📨 {request.method} {request.url.path} from {request.client.host if request.client else 'unknown'}")

    response = await call_next(request)

    logger.info(f"📤 Response: {response.status_code}")
    return response

# Health routes, explicit paths so nothing redirects
app.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)

app.include_router(
    documents.router,
    prefix="/documents",
    tags=["documents"]
)

app.include_router(
    settings_routes.router,
    prefix="/settings",
    tags=["settings"]
)

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }

# Exception handlers
@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    detail = getattr(exc, "detail", None)
    if isinstance(detail, dict):
        return JSONResponse({"detail": detail}, status_code=404)
    return JSONResponse(
        {
            "detail": "Resource not found",
            "status_code": 404,
            "path": str(request.url.path)
        },
        status_code=404
    )

@app.exception_handler(500)
async def internal_error_handler(request: Request, exc):
    logger.error(f"Internal error on {request.url}: {exc}")

    return JSONResponse({
        "detail": "Internal server error",
        "status_code": 500
    }, status_code=500)
