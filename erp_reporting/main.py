"""FastAPI application entry point."""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .models import Base
from .core.database import engine, SessionLocal
from .core.metrics import update_saved_reports_gauge
from .core.middleware import TenantContextMiddleware, RequestLoggingMiddleware
from .core.exceptions import register_exception_handlers

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="ERP Reporting API",
    description="Ad-hoc report builder over ERP data with CSV, PNG and PDF export",
    version="1.0.0",
    debug=settings.debug
)

# Register exception handlers
register_exception_handlers(app)

# Add middleware (order matters: logging → tenant → CORS)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TenantContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    try:
        logger.info("Starting ERP Reporting API...")
        logger.info(f"Environment: {settings.environment}")

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")

        db = SessionLocal()
        try:
            update_saved_reports_gauge(db)
        finally:
            db.close()

        logger.info("ERP Reporting API started successfully")
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down ERP Reporting API...")
    engine.dispose()


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "ERP Reporting API",
        "version": "1.0.0",
        "docs": "/docs"
    }


# Register API routers
from .api.endpoints.health import router as health_router  # noqa: E402
from .api.endpoints.reports import router as reports_router  # noqa: E402
from .core.metrics import metrics_router  # noqa: E402

app.include_router(health_router, tags=["health"])
app.include_router(reports_router, prefix="/api/v1", tags=["reports"])
app.include_router(metrics_router, tags=["monitoring"])
