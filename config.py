"""Configuration for the MnuFood marketplace API."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'mnufood.db'}",
)

# Web auth (JWT secret, session cookie, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 7
AUTH_COOKIE_NAME = "auth-token"
COOKIE_SECURE = _parse_bool(os.getenv("COOKIE_SECURE", "false"))  # True behind HTTPS
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
INITIAL_ADMIN_EMAIL = os.getenv("INITIAL_ADMIN_EMAIL", "admin@mnufood.com").lower()
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin

# Uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path(__file__).parent / "public" / "uploads"))
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
UPLOAD_MAX_BYTES = 5 * 1024 * 1024
# MIME type -> stored file extension
UPLOAD_ALLOWED_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

# CORS origins (comma-separated). Cookies need explicit origins, not "*".
CORS_ORIGINS = _parse_list(os.getenv("CORS_ORIGINS", "http://localhost:3000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Marketplace defaults (overridable at runtime through /api/settings)
MARKETPLACE_NAME = os.getenv("MARKETPLACE_NAME", "MnuFood Dakar")
CURRENCY = os.getenv("CURRENCY", "XOF")
DEFAULT_MIN_ORDER_AMOUNT = 3000.0
DEFAULT_OPENING_HOURS = "9h00 - 22h00"
