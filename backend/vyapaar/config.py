# backend/vyapaar/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/vyapaar.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # hosted Postgres/MySQL in production
        "sqlite:///vyapaar.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public invoice links expire after this many hours (0 = never)
    SHARE_LINK_TTL_HOURS = int(os.environ.get("SHARE_LINK_TTL_HOURS", "24"))

    # Calendar used for analytics buckets when a profile has no timezone
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "Asia/Kolkata")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DEFAULT_TIMEZONE = "UTC"
