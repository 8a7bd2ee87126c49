# backend/firelynx/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/firelynx.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///firelynx.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Document defaults
    DEFAULT_INVOICE_CURRENCY = os.environ.get("DEFAULT_INVOICE_CURRENCY", "USD")
    DEFAULT_VARIATION_CURRENCY = os.environ.get("DEFAULT_VARIATION_CURRENCY", "AED")

    # Bill approved variations as soon as the client approves them
    AUTO_INVOICE_APPROVED_VARIATIONS = _env_flag("AUTO_INVOICE_APPROVED_VARIATIONS")
    INVOICE_PAYMENT_TERMS_DAYS = int(os.environ.get("INVOICE_PAYMENT_TERMS_DAYS", "30"))
