# Configuration from environment variables (.env or the host's Variables).
# Imported by backend.database, backend.security and the export helpers.

import os
from dotenv import load_dotenv

load_dotenv()


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_int(key: str, default: int) -> int:
    s = _env(key)
    if not s:
        return default
    try:
        return int(s)
    except ValueError:
        return default


def _env_list(key: str, default: list = None) -> list:
    s = _env(key)
    if not s:
        return default or []
    s = s.strip().strip("[]")
    result = [x.strip() for x in s.split(",") if x.strip()]
    return result if result else (default or [])


# ============================================================================
# Database
# ============================================================================
# DATABASE_URL wins; DATABASE_URL_FALLBACK is the local sqlite file.
DATABASE_URL = _env("DATABASE_URL")
DATABASE_URL_FALLBACK = _env("DATABASE_URL_FALLBACK", "sqlite+aiosqlite:///./magic_admin.db")

# ============================================================================
# Accounts
# ============================================================================
GUEST_EMAIL_DOMAIN = _env("GUEST_EMAIL_DOMAIN", "guest.magic.com")
RESERVED_USERNAMES = _env_list("RESERVED_USERNAMES", ["admin"])
SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 10)

ADMIN_USERNAME = _env("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = _env("ADMIN_PASSWORD", "magic2024")
ADMIN_EMAIL = _env("ADMIN_EMAIL", "admin@magic.com")

# ============================================================================
# Exports / uploads
# ============================================================================
EXPORT_PREFIX = _env("EXPORT_PREFIX", "MAGIC")
EXPORT_SCHEMA_VERSION = "1.0.0"
UPLOAD_DIR = _env("UPLOAD_DIR", "uploads")

# ============================================================================
# HTTP
# ============================================================================
ALLOWED_ORIGINS = _env_list(
    "ALLOWED_ORIGINS", ["http://localhost:5173", "http://localhost:3000"]
)
LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
