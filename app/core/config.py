from typing import Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings

DEFAULT_JWT_SECRET = "dev-secret-change-me"

class Settings(BaseSettings):
    PROJECT_NAME: str = "Room Booking Backend"

    # Server
    PORT: int = 3000
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/errors.log"

    # Database: either a full URL or discrete PG* settings
    DATABASE_URL: Optional[str] = None
    PGHOST: Optional[str] = None
    PGPORT: int = 5432
    PGUSER: Optional[str] = None
    PGPASSWORD: Optional[str] = None
    PGDATABASE: Optional[str] = None
    DB_SSL: bool = False

    # Pool
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: float = 10.0
    DB_CONNECT_TIMEOUT: float = 10.0
    DB_QUERY_TIMEOUT: float = 30.0
    DB_APP_NAME: str = "room-booking-backend"
    DB_RECONNECT_BASE_DELAY: float = 0.5
    DB_RECONNECT_MAX_DELAY: float = 30.0
    DB_RECONNECT_MAX_ATTEMPTS: int = 8
    DB_AUTO_CREATE: bool = False

    # Security
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_EXPIRES_HOURS: int = 8
    DEV_IDENTITY_ENABLED: bool = False

    # Image tags reported by /health
    BACKEND_IMAGE: str = "unknown"
    FRONTEND_IMAGE: str = "unknown"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def dev_identity_allowed(self) -> bool:
        """The unverified identity header is never honoured in production."""
        return self.DEV_IDENTITY_ENABLED and not self.is_production

    @property
    def database_url(self) -> Optional[str]:
        """
        SQLAlchemy URL for the async engine, or None when the store is unconfigured.
        Plain postgres URLs are pointed at the asyncpg driver.
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            for prefix in ("postgres://", "postgresql://"):
                if url.startswith(prefix):
                    return "postgresql+asyncpg://" + url[len(prefix):]
            return url

        if self.PGHOST and self.PGDATABASE:
            auth = ""
            if self.PGUSER:
                auth = quote_plus(self.PGUSER)
                if self.PGPASSWORD:
                    auth += ":" + quote_plus(self.PGPASSWORD)
                auth += "@"
            return f"postgresql+asyncpg://{auth}{self.PGHOST}:{self.PGPORT}/{self.PGDATABASE}"

        return None

settings = Settings()
