"""
Configuration Settings for the Blog API

Centralizes environment-driven settings (database, tokens, uploads, CORS)
and the fixed enumerations shared by the schemas and services.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

from exceptions import ConfigurationError

APP_ROOT = Path(__file__).resolve().parent

load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))

APP_ENV = os.getenv("APP_ENV", "production")
PORT = int(os.getenv("PORT", 8000))

# Database Settings
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "blog")

# Security settings
DEFAULT_JWT_SECRET = "dev_secret_change_me"
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))  # 7 days
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Admin bootstrap (optional)
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")

# CORS
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "*")
CORS_ORIGINS = [origin.strip() for origin in FRONTEND_BASE_URL.split(",") if origin.strip()]

# Cloudinary
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

# =============================================================================
# Upload Settings
# =============================================================================

MAX_UPLOAD_BYTES = 5 * 1024 * 1024   # 5 MB per file
MAX_UPLOAD_FILES = 5                 # Files per multi-upload request
ALLOWED_UPLOAD_TYPES = ["image/jpeg", "image/png", "application/pdf"]
DEFAULT_UPLOAD_FOLDER = "blogs"
MULTI_UPLOAD_FOLDER = "blogs/files"

# =============================================================================
# Content Settings
# =============================================================================

CATEGORIES = ["tech", "lifestyle", "education", "health"]
POST_STATUSES = ["draft", "published"]
ROLES = ["user", "admin"]
DEFAULT_ROLE = "user"

# Dashboard
DASHBOARD_RECENT_PER_KIND = 5        # Records of each kind feeding the activity feed
DASHBOARD_ACTIVITY_LIMIT = 10        # Activity items returned with the stats payload
ACTIVITY_PER_KIND = 3                # Records of each kind for the standalone feed
ACTIVITY_LIMIT = 5
TOP_AUTHORS_LIMIT = 5
POPULAR_POSTS_LIMIT = 5
COMMENT_PREVIEW_LENGTH = 50

# Site settings document key
SITE_SETTINGS_KEY = "site"


def is_development() -> bool:
    return APP_ENV.lower() == "development"


def validate_settings():
    """
    Validate that the required settings are present.

    Raises:
        ConfigurationError: If a required setting is missing or unsafe.
    """
    logger = logging.getLogger(__name__)
    errors = []

    if not DATABASE_URL:
        errors.append("Missing required environment variable: DATABASE_URL")

    if JWT_SECRET == DEFAULT_JWT_SECRET:
        if is_development():
            logger.warning("JWT_SECRET is not set; using the development default.")
        else:
            errors.append("JWT_SECRET must be set outside development.")

    if bool(ADMIN_EMAIL) != bool(ADMIN_PASSWORD):
        logger.warning("ADMIN_EMAIL and ADMIN_PASSWORD must both be set to bootstrap an admin.")

    if not all([CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET]):
        logger.warning("Cloudinary credentials are not configured; uploads will fail.")

    if errors:
        raise ConfigurationError("Configuration validation failed:\n  - " + "\n  - ".join(errors))
