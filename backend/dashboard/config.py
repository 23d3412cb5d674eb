"""Application configuration and settings."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _int_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to default on bad input."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Settings:
    """Application settings loaded from environment variables."""

    # Strava OAuth Configuration
    STRAVA_CLIENT_ID: str = os.getenv("STRAVA_CLIENT_ID", "")
    STRAVA_CLIENT_SECRET: str = os.getenv("STRAVA_CLIENT_SECRET", "")
    STRAVA_REDIRECT_URI: str = os.getenv("STRAVA_REDIRECT_URI", "http://localhost:8080/auth/strava/callback")
    STRAVA_SCOPE: str = "read,activity:read_all"
    STRAVA_AUTH_URL: str = "https://www.strava.com/oauth/authorize"
    STRAVA_TOKEN_URL: str = "https://www.strava.com/oauth/token"
    STRAVA_API_BASE: str = "https://www.strava.com/api/v3"

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./db/dashboard.db")

    # Application Configuration
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Activity history
    ACTIVITIES_PAGE_SIZE: int = _int_env("ACTIVITIES_PAGE_SIZE", 200)  # max allowed by Strava
    HTTP_CACHE_TTL_SECONDS: int = _int_env("HTTP_CACHE_TTL_SECONDS", 15 * 60)
    DEFAULT_ROWS_PER_PAGE: int = _int_env("DEFAULT_ROWS_PER_PAGE", 25)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"


settings = Settings()
