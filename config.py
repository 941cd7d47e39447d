"""
Runtime configuration.

Settings are read from environment variables once, when this module is
imported.  There is no runtime reconfiguration: change the environment
and restart the process.
"""

import os
from dataclasses import dataclass, field
from typing import List


def _split_origins(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "CRM Sync API")
    port: int = int(os.getenv("PORT", "2000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # MongoDB connection string.  The database name embedded in the URL is
    # used unless DATABASE_NAME overrides it.
    database_url: str = os.getenv("DATABASE_URL", "mongodb://127.0.0.1:27017/crm_db")
    database_name: str = os.getenv("DATABASE_NAME", "")

    cors_origins: List[str] = field(
        default_factory=lambda: _split_origins(os.getenv("CORS_ORIGINS", "*"))
    )


settings = Settings()
