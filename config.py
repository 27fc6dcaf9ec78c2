"""
Runtime settings read from the environment.
"""

import os


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


PORT = _int("PORT", 8000)
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "reels")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Sessions
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
TOKEN_TTL_DAYS = _int("TOKEN_TTL_DAYS", 7)
COOKIE_NAME = "token"
COOKIE_SECURE = ENVIRONMENT == "production"
BCRYPT_ROUNDS = _int("BCRYPT_ROUNDS", 10)

# Media storage (ImageKit)
IMAGEKIT_PRIVATE_KEY = os.getenv("IMAGEKIT_PRIVATE_KEY")
IMAGEKIT_UPLOAD_URL = os.getenv("IMAGEKIT_UPLOAD_URL", "https://upload.imagekit.io/api/v1/files/upload")
IMAGEKIT_FOLDER = os.getenv("IMAGEKIT_FOLDER", "/reels")

# Ceilings
UPLOAD_TIMEOUT_SECONDS = _float("UPLOAD_TIMEOUT_SECONDS", 60)
UPLOAD_QUEUE_TIMEOUT_SECONDS = _float("UPLOAD_QUEUE_TIMEOUT_SECONDS", 30)
UPLOAD_WORKERS = _int("UPLOAD_WORKERS", 8)
REQUEST_TIMEOUT_SECONDS = _float("REQUEST_TIMEOUT_SECONDS", 30)
UPLOAD_REQUEST_TIMEOUT_SECONDS = _float("UPLOAD_REQUEST_TIMEOUT_SECONDS", 120)
MAX_UPLOAD_BYTES = _int("MAX_UPLOAD_BYTES", 50 * 1024 * 1024)
# base64 inflates the video by 4/3, plus room for the other JSON fields
MAX_BODY_BYTES = _int("MAX_BODY_BYTES", MAX_UPLOAD_BYTES * 4 // 3 + 64 * 1024)

DEFAULT_PAGE_SIZE = 10

DEFAULT_PROFILE_PIC = os.getenv("DEFAULT_PROFILE_PIC", "https://i.ibb.co/2FsfXqM/default-avatar.png")
