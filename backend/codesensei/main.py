"""CodeSensei - automated code review API."""
import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codesensei.config import Settings, get_settings
from codesensei.database import create_db_engine, create_session_factory
from codesensei.services.lifecycle import SessionLifecycleManager

logger = logging.getLogger(__name__)


async def revocation_sweep_loop(manager: SessionLifecycleManager, interval_seconds: float) -> None:
    """Periodically evict revocation and session entries past their token expiry."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = manager.sweep_expired()
            if removed["revocations"] or removed["sessions"]:
                logger.info(
                    f"Expiry sweep removed {removed['revocations']} revocations "
                    f"and {removed['sessions']} sessions"
                )
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Expiry sweep error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: create tables and start the expiry sweep
    from codesensei.database import Base

    # Import all models so they're registered with Base
    from codesensei import models  # noqa: F401

    Base.metadata.create_all(bind=app.state.engine)

    settings: Settings = app.state.settings
    sweep_task = None
    if settings.revocation_sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(
            revocation_sweep_loop(app.state.session_manager, settings.revocation_sweep_interval_seconds)
        )
    app.state.sweep_task = sweep_task
    # Sessions live only in this process; a restart forces every user to log in again
    logger.info(f"{settings.app_name} started; in-memory session registry is empty")

    yield

    # Shutdown
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application with its own session lifecycle manager."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from codesensei import models  # noqa: F401
    from codesensei.api import auth, history
    from codesensei.api.errors import register_exception_handlers

    app = FastAPI(
        title=settings.app_name,
        description="Submit code for automated review and manage your sessions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = create_db_engine(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.sweep_task = None
    app.state.session_manager = SessionLifecycleManager.from_settings(settings)

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "app": settings.app_name}

    app.include_router(auth.router)
    app.include_router(history.router)
    return app


app = create_app()
