from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./medqueue.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")

    # Identity provider session tokens
    identity_jwt_key: str = Field(default="dev-identity-key-change-me", env="IDENTITY_JWT_KEY")
    identity_jwt_algorithm: str = Field(default="HS256", env="IDENTITY_JWT_ALGORITHM")
    identity_jwt_issuer: str = Field(default="", env="IDENTITY_JWT_ISSUER")

    # Accounts that must exist before anyone signs in, e.g. {"ops@clinic.org": "admin"}
    preconfigured_profiles: dict[str, str] = Field(default_factory=dict, env="PRECONFIGURED_PROFILES")

    # HTTP
    cors_origins: list[str] = Field(default=["*"], env="CORS_ORIGINS")

    # In-memory sessions kept at once; least recently used are dropped first
    session_cache_size: int = Field(default=1000, env="SESSION_CACHE_SIZE")

    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
