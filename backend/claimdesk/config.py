# backend/claimdesk/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/claimdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///claimdesk.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ))

    # Claim lifecycle
    CLAIM_ESCALATION_THRESHOLD = os.environ.get("CLAIM_ESCALATION_THRESHOLD", "1000")
    CLAIM_ENABLED_STATUSES = _csv(os.environ.get(
        "CLAIM_ENABLED_STATUSES",
        "new,pending,recommendation,verified,under_review,approved,rejected,paid",
    ))
    CLAIM_DELETABLE_STATUSES = _csv(os.environ.get("CLAIM_DELETABLE_STATUSES", "new"))
    CLAIM_NUMBER_PREFIX = os.environ.get("CLAIM_NUMBER_PREFIX", "HFA-C")
    CLAIM_NUMBER_START = int(os.environ.get("CLAIM_NUMBER_START", "3001"))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "GBP")

    # Identity
    EMPLOYEE_ID_PREFIX = os.environ.get("EMPLOYEE_ID_PREFIX", "HFA-W")
    EMPLOYEE_ID_OFFSET = int(os.environ.get("EMPLOYEE_ID_OFFSET", "1000"))

    # Credentials
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Sessions
    ACCESS_TOKEN_TTL_MINUTES = int(os.environ.get("ACCESS_TOKEN_TTL_MINUTES", str(24 * 60)))
    REFRESH_TOKEN_TTL_DAYS = int(os.environ.get("REFRESH_TOKEN_TTL_DAYS", "7"))
    SESSION_IDLE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_IDLE_TIMEOUT_MINUTES", "120"))

    # Receipts
    UPLOAD_FOLDER = os.environ.get(
        "UPLOAD_FOLDER",
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "uploads"),
    )
    RECEIPT_BASE_URL = os.environ.get("RECEIPT_BASE_URL", "/uploads")
    MAX_CONTENT_LENGTH = 20 * 1024 * 1024
    ALLOWED_RECEIPT_EXTENSIONS = ("jpg", "jpeg", "png", "pdf")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
    BCRYPT_ROUNDS = 4
