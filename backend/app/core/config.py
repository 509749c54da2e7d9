from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    DATABASE_URL: str = Field(..., description="Database connection string")
    SECRET_KEY: str = Field(default="your-secret-key-change-this-in-production", description="Key used to verify identity tokens")
    ALGORITHM: str = Field(default="HS256", description="Algorithm for JWT (e.g., HS256)")
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3003", "http://localhost:3000", "http://localhost:5173"], description="Origins allowed to call the API")

    LOG_LEVEL: str = Field(default="INFO", description="Minimum log level")
    LOG_FORMAT: str = Field(default="console", description="Log renderer: console or json")

    MESSAGE_MAX_LENGTH: int = Field(default=10000, description="Maximum message content length in characters")
    GROUP_NAME_MAX_LENGTH: int = Field(default=255, description="Maximum group name length")
    DESCRIPTION_MAX_LENGTH: int = Field(default=1000, description="Maximum conversation description length")
    DEFAULT_PAGE_SIZE: int = Field(default=50, description="Messages returned per page when no limit is given")
    MAX_PAGE_SIZE: int = Field(default=100, description="Upper bound for any page size")

    TYPING_TTL_SECONDS: float = Field(default=3.0, description="How long a typing signal stays visible")
    TYPING_SWEEP_INTERVAL_SECONDS: float = Field(default=5.0, description="Period of the expired typing signal sweep")

    STORE_RETRY_ATTEMPTS: int = Field(default=1, description="Automatic retries for transient store failures")
    STORE_RETRY_BACKOFF_SECONDS: float = Field(default=0.2, description="Base backoff before retrying a store failure")

    model_config = SettingsConfigDict(env_file=".env")

settings = Settings()
