from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Environment setting
    ENVIRONMENT: str = Field(
        "development", description="Environment: development, staging, production"
    )

    # API settings
    API_PREFIX: str = Field("/api")
    DEBUG: bool = Field(False)
    ALLOWED_ORIGINS: str = Field("*")

    # Database settings
    DB_HOST: str = Field("localhost")
    DB_PORT: int = Field(5432)
    DB_USER: str = Field("")
    DB_PASSWORD: str = Field("")
    DB_NAME: str = Field("motomate")
    DB_DRIVER: str = Field("postgresql+asyncpg")

    SQLITE_MODE: bool = False
    CREATE_TABLES_ON_STARTUP: bool = True

    # Jwt Security settings (tokens are issued by the external auth service)
    SECRET_KEY: str = Field("change-me")
    ALGORITHM: str = Field("HS256")

    # Uvicorn settings
    UVICORN_HOST: str = Field("0.0.0.0")
    UVICORN_PORT: int = Field(8000)
    WORKERS_COUNT: int = Field(1)
    RELOAD: bool = Field(False)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(True)
    RATE_LIMIT_DEFAULT: str = Field("200/minute")

    # Shop scheduling policy
    TIME_SLOTS: str = Field(
        "09:00-11:00,11:00-13:00,14:00-16:00,16:00-18:00",
        description="Comma separated slot labels, in display order",
    )
    SLOT_CAPACITY: int = Field(3, description="Bookings allowed per slot per day")

    # Billing policy
    TAX_RATE: Decimal = Field(Decimal("0.18"))
    INVOICE_DUE_DAYS: int = Field(7)
    CURRENCY: str = Field("PKR")

    @property
    def POSTGRESQL_DATABASE_URL(self) -> str:
        return (
            f"{self.DB_DRIVER}://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def SQLITE_DATABASE_URL(self) -> str:
        return f"sqlite+aiosqlite:///{self.DB_NAME}.db"

    @property
    def DATABASE_URL(self) -> str:
        return (
            self.SQLITE_DATABASE_URL
            if self.SQLITE_MODE
            else self.POSTGRESQL_DATABASE_URL
        )

    @property
    def SLOT_LABELS(self) -> List[str]:
        return [label.strip() for label in self.TIME_SLOTS.split(",") if label.strip()]

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return self.ALLOWED_ORIGINS.split(",") if self.ALLOWED_ORIGINS else []

    @field_validator("SLOT_CAPACITY")
    def validate_capacity(cls, v: int) -> int:
        if v < 0:
            raise ValueError("SLOT_CAPACITY cannot be negative")
        return v

    @field_validator("TAX_RATE")
    def validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("TAX_RATE must be a fraction between 0 and 1")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
