"""
Maintenance Ticket Desk - Configuration Management
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Spreadsheet ticket store (Apps Script web app)
    sheet_api_url: str = "https://script.google.com/macros/s/your-deployment-id/exec"
    sheet_api_timeout: float = 30.0
    sheet_api_max_retries: int = Field(3, ge=1)

    # "sheet" talks to the spreadsheet API, "memory" keeps tickets in-process
    store_backend: str = "sheet"
    # Comma-separated username:password:role entries for the in-memory store
    memory_users: str = ""

    # Tickets
    default_priority: str = "Medium"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Whether the app runs in development mode"""
        return self.fastapi_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
