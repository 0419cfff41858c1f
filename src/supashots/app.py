"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from supashots.api.routes import history, shots
from supashots.core.config import Settings, configure_logging
from supashots.core.database import create_tables, setup_db_session
from supashots.orchestrator.service import ShotOrchestrator
from supashots.uow import SqlSnapshotStore, create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, create the session factory and tables, build the orchestrator
    - Shutdown: Cancel background batches, dispose of the connection pool
    """
    # Load settings
    settings = Settings()  # type: ignore[call-arg]

    # Configure logging
    configure_logging(settings)

    # Setup database session factory
    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    engine = session_factory.kw["bind"]
    await create_tables(engine)

    # Snapshot store goes through one UoW per operation
    uow_factory = create_uow_factory(session_factory)
    orchestrator = ShotOrchestrator.from_settings(settings, SqlSnapshotStore(uow_factory))

    # Store in app.state for access in routes
    app.state.session_factory = session_factory
    app.state.orchestrator = orchestrator

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        image_model=settings.image_model,
        concurrency=settings.generation_concurrency,
    )

    yield

    logger.info("application.shutdown")
    await orchestrator.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="SupaShots API",
        description="Styled shot generation from a single source image",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    app.include_router(shots.router)  # prefix="/api"
    app.include_router(history.router)  # prefix="/api/history"

    # Health check endpoint with database validation
    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
