from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
from urllib.parse import quote_plus

from dotenv import load_dotenv


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    allowed_origins: Tuple[str, ...] = field(default_factory=lambda: ("http://localhost:5173",))


def _build_sqlserver_url() -> str:
    # odbc_connect handles passwords with special characters and driver names with spaces.
    odbc_driver = os.getenv("ODBC_DRIVER", "ODBC Driver 18 for SQL Server")
    odbc_str = (
        f"DRIVER={{{odbc_driver}}};"
        f"SERVER={os.getenv('DB_HOST', 'localhost')},{int(os.getenv('DB_PORT', '1433'))};"
        f"DATABASE={os.getenv('DB_NAME', 'SmartHomeDb')};"
        f"UID={os.getenv('DB_USER', 'sa')};"
        f"PWD={os.getenv('DB_PASSWORD', '')};"
        "TrustServerCertificate=yes;"
    )
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(odbc_str)}"


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("SMARTHOME_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    database_url = os.getenv("DATABASE_URL") or _build_sqlserver_url()

    origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")
    allowed_origins = tuple(o.strip() for o in origins.split(",") if o.strip())

    return Settings(
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        allowed_origins=allowed_origins,
    )
