# backend/eventpay/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///eventpay.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("EVENTPAY_LOG_LEVEL", "INFO")

    # Bearer sessions expire after this many hours regardless of activity
    SESSION_TTL_HOURS = int(os.environ.get("EVENTPAY_SESSION_TTL_HOURS", "24"))

    # Root allocation is depth 0; staff are depth 1
    MAX_SELLER_DEPTH = int(os.environ.get("EVENTPAY_MAX_SELLER_DEPTH", "5"))

    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("EVENTPAY_TX_RETRIES", "3"))

    # Pending staff transfers stop reserving allocation after this window
    STAFF_TRANSFER_EXPIRY_HOURS = int(os.environ.get("EVENTPAY_STAFF_TRANSFER_EXPIRY_HOURS", "48"))
