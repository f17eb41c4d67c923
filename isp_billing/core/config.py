# isp_billing/core/config.py
"""
Process-level configuration read from the environment (.env supported).
Business settings (reminder window, notification switch...) live in the
`settings` table instead, see services/settings_service.py.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "data")
DEFAULT_DATABASE_FILE = os.path.join(DATA_DIR, "db", "billing.sqlite")


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str | None = None
    app_env: str = "development"
    allowed_origins: str = "http://localhost:8000"
    log_level: str = "INFO"
    audit_log_dir: str = "logs"
    uvicorn_port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def notify_url(self) -> str:
        """Internal endpoint the scheduler process pokes after changing data."""
        return f"http://127.0.0.1:{self.uvicorn_port}/api/internal/notify-update"

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        os.makedirs(os.path.dirname(DEFAULT_DATABASE_FILE), exist_ok=True)
        return f"sqlite:///{DEFAULT_DATABASE_FILE}"


@lru_cache
def get_settings() -> AppSettings:
    load_dotenv()
    return AppSettings()
