# backend/appointly/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/appointly.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///appointly.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tenant routing lives upstream; this header carries the resolved tenant id
    TENANT_HEADER = os.environ.get("TENANT_HEADER", "X-Tenant-ID")

    # Confirm is the only locked operation; these tune its retry loop
    CONFIRM_RETRY_ATTEMPTS = int(os.environ.get("CONFIRM_RETRY_ATTEMPTS", "3"))
    CONFIRM_RETRY_BACKOFF_SECONDS = float(os.environ.get("CONFIRM_RETRY_BACKOFF_SECONDS", "0.05"))

    BOOKING_LIST_LIMIT = int(os.environ.get("BOOKING_LIST_LIMIT", "500"))

    # Comma-separated list of front-end origins allowed to call the API
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",") if o.strip()
    )
