# backend/kiosco/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kiosco.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///kiosco.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Operator-facing dates (CSV export, period filters) use this zone
    DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "America/Argentina/Buenos_Aires")

    DEFAULT_BUSINESS_NAME = os.environ.get("DEFAULT_BUSINESS_NAME", "Kiosco")

    # Product-name keywords counted on the dashboard (case-insensitive substring)
    TRACKED_PRODUCT_KEYWORDS = _split_csv(
        os.environ.get("TRACKED_PRODUCT_KEYWORDS", "luz,invitado,paleta")
    )

    # bcrypt cost factor for operator passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
