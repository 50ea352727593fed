# finance_tracker/config.py
import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _get_env(name, default=""):
    v = os.environ.get(name)
    return default if v is None else v


def _get_int(name, default):
    v = os.environ.get(name)
    if v is None or not v.strip():
        return default
    return int(v)


def load_config():
    """Read settings from the environment. Keys match app.config names."""
    return {
        "DB_PATH": _get_env("DB_PATH", os.path.join(BASE_DIR, "..", "data", "finance.db")),
        "JWT_SECRET_KEY": _get_env("JWT_SECRET_KEY", "dev-key-for-local-development-only-change-me"),
        "JWT_EXPIRES_DAYS": _get_int("JWT_EXPIRES_DAYS", 7),
        "CORS_ORIGINS": _get_env("CORS_ORIGINS", "http://localhost:5173"),
        "LOG_LEVEL": _get_env("LOG_LEVEL", "INFO").upper(),
        "MAX_PAGE_SIZE": _get_int("MAX_PAGE_SIZE", 500),
        "TOP_LIMIT_MAX": _get_int("TOP_LIMIT_MAX", 50),
    }
