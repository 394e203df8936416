"""
subledger Application Configuration
===================================

PURPOSE:
    Pydantic-Settings based configuration for the subledger billing core.
    All settings can be overridden via environment variables (SUBLEDGER_ prefix)
    or a local .env file.

    DATABASE_URL (no prefix) is honoured as well, since that is what most
    container platforms and Alembic CLI invocations export.
"""

import logging
import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime settings for the API and the billing services."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SUBLEDGER_", extra="ignore")

    app_name: str = "subledger"
    debug: bool = False

    # Persistence
    data_directory: str = "./data"
    database_url: Optional[str] = None  # Falls back to DATABASE_URL, then SQLite under data_directory

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None  # None = stderr only

    # Billing defaults
    billing_default_due_days: int = 30         # Plan due-days when not given at plan creation
    quotation_validity_days: int = 30          # Quotation expiration offset used by `quote`
    default_quotation_template: str = "standard"

    # Pagination
    pagination_default_limit: int = 20
    pagination_max_limit: int = 100

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    def resolved_database_url(self) -> str:
        """Return the effective SQLAlchemy URL."""
        if self.database_url:
            return self.database_url
        env_url = os.environ.get("DATABASE_URL")
        if env_url:
            return env_url
        return f"sqlite:///{os.path.join(self.data_directory, 'subledger.db')}"


settings = Settings()
