# backend/laundromat/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/laundromat.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///laundromat.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every storage round trip is bounded; see create_app for how this maps
    # onto driver options.
    STORAGE_TIMEOUT_SECONDS = float(os.environ.get("STORAGE_TIMEOUT_SECONDS", "10"))

    # Used when the "tax_rate" setting has never been written.
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "8.875")

    # Business dates (drawer counts, "today" reports) are local to the shop.
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/New_York")

    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "KP")
    ORDER_NUMBER_PAD = int(os.environ.get("ORDER_NUMBER_PAD", "5"))

    # Card payment gateway (unset URL disables card charging)
    PAYMENT_GATEWAY_URL = os.environ.get("PAYMENT_GATEWAY_URL")
    PAYMENT_GATEWAY_API_KEY = os.environ.get("PAYMENT_GATEWAY_API_KEY")
    PAYMENT_GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "15"))

    # Notification relay endpoints (unset URL means the channel is skipped)
    NOTIFY_EMAIL_URL = os.environ.get("NOTIFY_EMAIL_URL")
    NOTIFY_SMS_URL = os.environ.get("NOTIFY_SMS_URL")
    NOTIFY_API_KEY = os.environ.get("NOTIFY_API_KEY")
    NOTIFY_TIMEOUT_SECONDS = float(os.environ.get("NOTIFY_TIMEOUT_SECONDS", "5"))

    RESET_CODE_TTL_MINUTES = int(os.environ.get("RESET_CODE_TTL_MINUTES", "15"))
    # Send notifications on the calling thread instead of the worker pool
    NOTIFY_SYNC = os.environ.get("NOTIFY_SYNC", "").lower() in ("1", "true", "yes")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Browser origins allowed to call the API, comma separated (empty disables CORS)
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
