"""
LeadCadence FastAPI application entry point.

Flow: questionnaire → score → tier → qualification record → cadence eligibility → outreach attempt
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app import __version__
from app.config import get_settings
from app.db.session import SessionLocal, check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("LeadCadence starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        # A bad questionnaire or threshold table must stop the deployment here,
        # not fail the first submission.
        try:
            from app.qualification.loader import load_questionnaire
            from app.services.qualification.classification_policy import get_classification_policy

            questionnaire = load_questionnaire()
            policy = get_classification_policy()
            logger.info(
                "Questionnaire v%d validated (%d questions); %r",
                questionnaire.version,
                len(questionnaire.questions),
                policy,
            )
        except Exception as e:
            logger.critical("Qualification configuration invalid at startup: %s", e)
            raise

        if get_settings().seed_cadence_strategies:
            from app.services.cadence.strategy_store import seed_default_strategies

            db = SessionLocal()
            try:
                seed_default_strategies(db)
            finally:
                db.close()

        yield
    finally:
        logger.info("LeadCadence shutting down")
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

    # Engine routes (scheduler / admin automation — token-authenticated)
    from app.api.cadence import router as cadence_router
    from app.api.qualifications import router as qualifications_router

    app.include_router(qualifications_router, prefix="/api/qualifications", tags=["qualifications"])
    app.include_router(cadence_router, prefix="/api/cadence", tags=["cadence"])

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
