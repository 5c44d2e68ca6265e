from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from decimal import Decimal
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./reservations.db",
        alias="DATABASE_URL"
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Security - tokens are issued by the auth subsystem, we only verify them
    secret_key: str = Field(default="dev-secret-key-at-least-32-characters-long-for-development", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Pricing
    # ==============================================
    # Used when a property does not carry its own tax rate
    default_tax_rate_percent: Decimal = Field(default=Decimal("19"), alias="DEFAULT_TAX_RATE_PERCENT")
    default_currency: str = Field(default="DZD", alias="DEFAULT_CURRENCY")

    # Client-supplied price breakdowns are ignored unless this is on
    # and the caller is an admin or manager
    trust_client_pricing: bool = Field(default=False, alias="TRUST_CLIENT_PRICING")

    # ==============================================
    # Booking window
    # ==============================================
    max_advance_days: int = Field(default=730, alias="MAX_ADVANCE_DAYS")
    max_stay_nights: int = Field(default=365, alias="MAX_STAY_NIGHTS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Rate limiting (slowapi); use redis://... when running several instances
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is strong enough"""
        if not v:
            raise ValueError("SECRET_KEY is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator('default_tax_rate_percent')
    @classmethod
    def validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("DEFAULT_TAX_RATE_PERCENT cannot be negative")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def sqlalchemy_database_url(self) -> str:
        """Hosting providers hand out postgres:// but SQLAlchemy needs postgresql://"""
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
