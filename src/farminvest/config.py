import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from psycopg2.extensions import make_dsn

load_dotenv()

logger = logging.getLogger(__name__)

# Development-only signing secret; startup warns loudly when it is in use.
DEV_JWT_SECRET = "farminvest_secret_key"


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {value!r}.")


def app_env() -> str:
    return os.getenv("APP_ENV", "development").lower()


def is_production() -> bool:
    return app_env() == "production"


# PUBLIC_INTERFACE
def build_dsn() -> str:
    """
    Build the database DSN from environment variables.

    Uses:
      - DATABASE_URL (optional full DSN; if provided, it wins)
      - DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    return make_dsn(
        host=os.getenv("DB_HOST", "localhost"),
        port=_int_env("DB_PORT", 5432),
        user=os.getenv("DB_USER", "postgres"),
        password=os.getenv("DB_PASSWORD") or None,
        dbname=os.getenv("DB_NAME", "farminvestlite"),
    )


def pool_min_size() -> int:
    return _int_env("DB_POOL_MIN", 0)


def pool_max_size() -> int:
    return _int_env("DB_POOL_MAX", 10)


def pool_timeout() -> Optional[float]:
    """Seconds to wait for a free pooled connection; None waits forever."""
    seconds = _int_env("DB_POOL_TIMEOUT", 30)
    return float(seconds) if seconds > 0 else None


def jwt_secret_configured() -> bool:
    return bool(os.getenv("JWT_SECRET"))


# PUBLIC_INTERFACE
def jwt_secret() -> str:
    """Return the token signing secret, falling back to the development value."""
    secret = os.getenv("JWT_SECRET")
    if secret:
        return secret
    if is_production():
        raise RuntimeError("Missing required environment variable 'JWT_SECRET' (APP_ENV=production).")
    return DEV_JWT_SECRET


def jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def jwt_exp_minutes() -> int:
    return _int_env("JWT_EXPIRES_MINUTES", 10080)  # default: 7 days


def cors_allow_origins() -> List[str]:
    value = os.getenv("CORS_ALLOW_ORIGINS")
    if not value:
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def server_host() -> str:
    return os.getenv("HOST", "0.0.0.0")


def server_port() -> int:
    return _int_env("PORT", 3000)


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


# PUBLIC_INTERFACE
def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL."""
    logging.basicConfig(
        level=log_level(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# PUBLIC_INTERFACE
def check_jwt_secret() -> None:
    """Abort in production without a secret; warn loudly elsewhere."""
    if jwt_secret_configured():
        return
    if is_production():
        raise RuntimeError("JWT_SECRET must be set when APP_ENV=production.")
    logger.warning(
        "JWT_SECRET is not set; signing tokens with the built-in development secret. "
        "Set JWT_SECRET before exposing this service."
    )
