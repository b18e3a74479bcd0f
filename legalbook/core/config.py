from datetime import time
from typing import List, Optional

from pydantic import PostgresDsn, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "LegalBook Scheduling"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "legalbook"
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str = "legalbook"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    AUTO_CREATE_TABLES: bool = False

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(
            PostgresDsn.build(
                scheme="postgresql",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_SERVER,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
        )

    # Security
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Scheduling
    TIMEZONE: str = "Africa/Nairobi"
    BUSINESS_HOURS_START: time = time(8, 0)
    BUSINESS_HOURS_END: time = time(18, 0)
    BUSINESS_DAYS: List[int] = [1, 2, 3, 4, 5]  # ISO weekdays, Monday = 1
    SLOT_STEP_MINUTES: int = 30
    MIN_LEAD_MINUTES: int = 60
    MAX_APPOINTMENT_MINUTES: int = 240

    CALENDAR_STORE: str = "sql"   # sql | memory
    NOTIFICATION_BACKEND: str = "log"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return upper

    @field_validator("BUSINESS_DAYS")
    @classmethod
    def validate_business_days(cls, v: List[int]) -> List[int]:
        if any(day < 1 or day > 7 for day in v):
            raise ValueError("BUSINESS_DAYS must hold ISO weekdays (1-7)")
        return sorted(set(v))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore"
    )

settings = Settings()
