"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from src.config import settings
from src.db.session import AsyncSessionLocal, init_db
from src.api.routes import products
from src.ingest.registry import build_default_registry
from src.worker.scraping_service import ScrapingService

# Configure structured logging
from src.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Product Scraper...")

    await init_db()

    registry = build_default_registry()
    app.state.scraping_service = ScrapingService(registry, session_factory=AsyncSessionLocal)
    logger.info(
        f"Registered extractors: {', '.join(p.value for p in registry.platforms())}"
    )

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.scraping_service.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Product Scraper",
    description="Scrape product pages into canonical product records",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(products.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
