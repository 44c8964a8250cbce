"""Application configuration via Pydantic Settings."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global crawler settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Document store
    DATABASE_URL: str = "sqlite+aiosqlite:///./restockradar.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # Fetch transport
    USER_AGENT: str = "RestockRadar Bot 1.0 (+https://restockradar.app)"
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    PRODUCT_PAGE_TIMEOUT_SECONDS: float = 20.0
    PRODUCT_PAGE_DELAY_SECONDS: float = 1.0
    BROWSER_HEADLESS: bool = True
    PROXY_LIST: str = ""  # Comma-separated proxy URLs for the browser strategy

    # Orchestration
    CRAWL_CONCURRENCY: int = 3
    SITE_TIMEOUT_SECONDS: float = 180.0
    CRAWL_INTERVAL_MINUTES: int = 60

    # Normalization
    CANONICAL_CURRENCY: str = "EUR"
    MINOR_UNIT_THRESHOLD: int = 1000

    # Image assets
    STORE_IMAGES: bool = False
    ASSET_ROOT: str = "./assets"
    ASSET_PUBLIC_BASE_URL: str = "http://localhost:8080/assets"
    IMAGE_MAX_SIZE: int = 400
    IMAGE_QUALITY: int = 85

    def get_proxy_list(self) -> list[str]:
        """Parse PROXY_LIST into a list of proxy URLs."""
        if not self.PROXY_LIST:
            return []
        return [p.strip() for p in self.PROXY_LIST.split(",") if p.strip()]


settings = Settings()
