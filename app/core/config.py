from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'gep_user'
    POSTGRES_PASSWORD: str = 'gep_pass'
    POSTGRES_DB: str = 'gep_erp'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432

    # CORS
    CORS_ALLOWED_ORIGINS: list = ["*"]

    # Comparative reports
    COMPARATIVE_SPARKLINE_WEEKS: int = 12  # Semanas del sparkline de cada KPI

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def async_database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("COMPARATIVE_SPARKLINE_WEEKS")
    @classmethod
    def validate_sparkline_weeks(cls, v):
        if not 1 <= v <= 52:
            raise ValueError("COMPARATIVE_SPARKLINE_WEEKS must be between 1 and 52")
        return v

settings = Settings()
