"""
Project: Community Lunch Orders

Description:
Runtime configuration. Every value can be overridden from the environment;
the defaults are meant for local development.
"""

import os


class Config:
    SECRET_KEY = os.environ.get("LUNCH_SECRET_KEY", "dev-secret-change-me")

    # "sql" uses the SQLAlchemy models, "local" keeps everything in one JSON file
    STORAGE_BACKEND = os.environ.get("LUNCH_STORAGE_BACKEND", "sql")
    LOCAL_STORE_PATH = os.environ.get("LUNCH_LOCAL_STORE_PATH", os.path.join("data", "lunch-store.json"))

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///lunch.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DB_TIMEOUT_SECONDS = float(os.environ.get("LUNCH_DB_TIMEOUT", "10"))

    SOCKETIO_ASYNC_MODE = os.environ.get("LUNCH_SOCKETIO_ASYNC_MODE", "eventlet")

    LOG_LEVEL = os.environ.get("LUNCH_LOG_LEVEL", "INFO")

    # how many donations / usage rows the ledger pages show
    RECENT_LIMIT = int(os.environ.get("LUNCH_RECENT_LIMIT", "10"))

    PORT = int(os.environ.get("PORT", "5013"))


def engine_options(uri, timeout):
    """SQLAlchemy engine options so a stuck database call cannot hang forever."""
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {"pool_pre_ping": True, "pool_timeout": timeout}
