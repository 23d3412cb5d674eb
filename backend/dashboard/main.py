"""FastAPI application entry point."""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from dashboard.config import settings
from dashboard.database import init_db
from dashboard.logging_config import setup_logging
from dashboard.routers import activities, athlete, auth
from dashboard.services.session import DashboardSessions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize application on startup."""
    setup_logging(settings.LOG_LEVEL)

    # Ensure database directory exists
    if settings.DATABASE_URL.startswith("sqlite:///"):
        db_path = Path(settings.DATABASE_URL.replace("sqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)

    # Create database tables
    init_db()
    logger.info("Database initialized")
    logger.info("Running in %s mode", settings.ENVIRONMENT)

    yield


def create_app() -> FastAPI:
    """Build the application with routers and per-user dashboard state."""
    app = FastAPI(
        title="Strava Activities Dashboard",
        description="Filter and summarize a Strava athlete's activity history",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add session middleware for user authentication
    app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

    app.state.dashboards = DashboardSessions()

    # Register routers
    app.include_router(auth.router)
    app.include_router(activities.router)
    app.include_router(athlete.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "environment": settings.ENVIRONMENT}

    _mount_frontend(app)
    return app


def _mount_frontend(app: FastAPI) -> None:
    # In Docker: /app/frontend/dist; in local dev: <repo>/frontend/dist
    if os.environ.get("RUNNING_IN_DOCKER"):
        static_dir = Path("/app/frontend/dist")
    else:
        static_dir = Path(__file__).parent.parent.parent / "frontend" / "dist"

    if not static_dir.exists():
        return

    # Mount the assets directory for CSS/JS files
    app.mount("/assets", StaticFiles(directory=str(static_dir / "assets")), name="assets")

    @app.get("/")
    async def serve_frontend():
        """Serve the frontend application."""
        return FileResponse(str(static_dir / "index.html"))


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dashboard.main:app", host="0.0.0.0", port=8080, reload=settings.is_development)
