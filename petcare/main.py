"""FastAPI application entry point for PetCare."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from petcare.config import get_settings
from petcare.database import Database
from petcare.routers import auth_router, pets_router
from petcare.services.identity import IdentityProviderClient
from petcare.services.profiles import ProfileRepository
from petcare.services.session import SessionManager
from petcare.services.session_cache import SessionCache
from petcare.services.storage import create_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Connects the database and owns the session manager for the lifetime of
    the process.
    """
    settings = get_settings()

    # Startup
    logger.info("Starting PetCare API...")
    await Database.connect()

    store = create_store(settings.session_cache_path)
    provider = IdentityProviderClient(
        ProfileRepository(Database.get_db()),
        token_store=store,
    )
    manager = SessionManager(provider, SessionCache(store))
    await manager.start()
    app.state.session_manager = manager
    logger.info("PetCare API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down PetCare API...")
    app.state.session_manager = None
    await manager.close()
    await provider.close()
    await Database.disconnect()
    logger.info("PetCare API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Pet records behind a reconciled authentication session",
        version="1.0.0",
        lifespan=lifespan,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # The UI runs on the same device
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/api")
    app.include_router(pets_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        session = getattr(app.state, "session_manager", None)
        try:
            db = Database.get_db()
            await db.command("ping")
            return {
                "status": "healthy",
                "database": "connected",
                "session_initialized": session is not None and not session.is_initializing,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
            }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "petcare.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
