import datetime

from constants import (
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MIN_DELAY_MS,
    DEFAULT_READ_MAX_DELAY_MS,
    DEFAULT_READ_MIN_DELAY_MS,
)


class Config:
    """Defaults; overridden by PHARMACHAIN_* environment variables and create_app()."""

    SQLALCHEMY_DATABASE_URI = "sqlite:///pharmachain.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = "supersecretkey123"
    JWT_ACCESS_TOKEN_EXPIRES = datetime.timedelta(hours=1)

    CORS_ORIGINS = ["http://localhost:5173"]

    LEDGER_MIN_DELAY_MS = DEFAULT_MIN_DELAY_MS
    LEDGER_MAX_DELAY_MS = DEFAULT_MAX_DELAY_MS
    LEDGER_READ_MIN_DELAY_MS = DEFAULT_READ_MIN_DELAY_MS
    LEDGER_READ_MAX_DELAY_MS = DEFAULT_READ_MAX_DELAY_MS
    LEDGER_POLICY = "role_address"

    LOG_LEVEL = "INFO"
