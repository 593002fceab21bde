import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV.lower() == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pokepals.db")

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")
SESSION_ALGORITHM = os.getenv("SESSION_ALGORITHM", "HS256")
SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "pokepals_session")
SESSION_COOKIE_SECURE = _get_bool(os.getenv("SESSION_COOKIE_SECURE"), default=IS_PRODUCTION)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_STATS_MODEL = os.getenv("GEMINI_STATS_MODEL", "gemini-2.5-flash")
GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-3-pro-image-preview")

OBJECT_STORAGE_DIR = os.getenv("OBJECT_STORAGE_DIR", "./data/objects")
UPLOAD_TOKEN_MINUTES = int(os.getenv("UPLOAD_TOKEN_MINUTES", "15"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3001").rstrip("/")

ADMIN_EMAILS = {email.lower() for email in _get_list(os.getenv("ADMIN_EMAILS"))}
MONTHLY_CARD_LIMIT = int(os.getenv("MONTHLY_CARD_LIMIT", "10"))
ADMIN_CARD_LIMIT = 999999

FEED_CACHE_TTL_SECONDS = float(os.getenv("FEED_CACHE_TTL_SECONDS", "30"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS")) or ["http://localhost:5173", "http://localhost:3001"]


def validate_runtime_config() -> None:
    if IS_PRODUCTION and SESSION_SECRET == "change-me":
        raise RuntimeError("SESSION_SECRET must be set in production.")
    if IS_PRODUCTION and not GEMINI_API_KEY:
        raise RuntimeError("GEMINI_API_KEY must be set in production.")
