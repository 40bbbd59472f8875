"""Application configuration"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./typing_test.db"

    # Server
    ENVIRONMENT: str = "development"  # development or production
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    # CORS
    CORS_ORIGINS: str = (
        "http://localhost:5173,http://localhost:3000,"
        "https://santhoshsiddhu75.github.io,https://typing-speed-test-ten-delta.vercel.app"
    )

    # JWT Authentication
    JWT_SECRET: Optional[str] = None          # random per-process secret if absent
    JWT_REFRESH_SECRET: Optional[str] = None  # separate signing domain for refresh tokens
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "typing-speed-test-api"
    JWT_AUDIENCE: str = "typing-speed-test-app"
    JWT_ACCESS_EXPIRE_SECONDS: int = 900       # 15 minutes
    JWT_REFRESH_EXPIRE_SECONDS: int = 604800   # 7 days

    # Passwords
    BCRYPT_ROUNDS: int = 12
    LOG_HASH_SALT: str = "salt"

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None

    # Per-route auth rate limits
    AUTH_RATE_WINDOW_SECONDS: int = 15 * 60
    AUTH_RATE_MAX: int = 10
    PASSWORD_CHANGE_RATE_MAX: int = 3

    # App-wide backstop rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: List[str] = ["200/minute"]
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # Use redis:// for production

    # Monitoring
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    # Security
    TRUST_PROXY_HEADERS: bool = False  # Set True if behind reverse proxy
    ADMIN_USERNAMES: str = "admin,administrator"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def admin_usernames_list(self) -> List[str]:
        return [name.strip().lower() for name in self.ADMIN_USERNAMES.split(",") if name.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.ENVIRONMENT.lower() in ("prod", "production")


settings = Settings()
