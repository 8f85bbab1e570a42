"""
Autotune results service FastAPI application entry point.

Batch job finishes → /Results/JobFinished → email the requester → update the job row
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from autotune_web import __version__
from autotune_web.config import get_settings
from autotune_web.db.session import check_db_connection, create_tables, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Autotune results service starting")
    try:
        try:
            check_db_connection()
            create_tables()
            logger.info("Database connection verified, jobs/settings tables ready")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        settings = get_settings()
        if not settings.results_callback_key:
            logger.warning("RESULTS_CALLBACK_KEY is not set; every callback will be rejected")
        if not settings.sendgrid_api_key:
            logger.warning("SENDGRID_API_KEY is not set; results emails cannot be sent")

        yield
    finally:
        logger.info("Autotune results service shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Batch completion callback (shared-key authenticated)
    from autotune_web.api.results import router as results_router

    app.include_router(results_router, tags=["results"])

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            from fastapi.responses import JSONResponse

            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
