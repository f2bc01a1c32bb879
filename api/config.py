"""
Environment-aware configuration.
Secrets, token lifetimes, database URL, refresh cookie attributes and logging.
"""
import os
from dotenv import load_dotenv

from utils.exceptions import InternalError

load_dotenv()  # Read .env if present

DEFAULT_ACCESS_SECRET = "dev-access-secret-change-me"
DEFAULT_REFRESH_SECRET = "dev-refresh-secret-change-me"


class BaseConfig:
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///sessions.db")
    SQL_ECHO = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

    # Access token: short-lived, stateless
    JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_ACCESS_SECRET)
    JWT_EXPIRATION = os.getenv("JWT_EXPIRATION", "15m")
    # Refresh token: long-lived, backed by a Session row, separate secret
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", DEFAULT_REFRESH_SECRET)
    REFRESH_TOKEN_EXPIRATION = os.getenv("REFRESH_TOKEN_EXPIRATION", "7d")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "session-service")

    # argon2 cost parameters
    PASSWORD_TIME_COST = int(os.getenv("PASSWORD_TIME_COST", "3"))
    PASSWORD_MEMORY_COST = int(os.getenv("PASSWORD_MEMORY_COST", "65536"))

    REFRESH_COOKIE_NAME = "refresh_token"
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/api/v1/auth")
    REFRESH_COOKIE_SECURE = False
    ENFORCE_SECRETS = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    LOG_LEVEL = "WARNING"
    JWT_SECRET = "test-access-secret"
    REFRESH_TOKEN_SECRET = "test-refresh-secret"
    JWT_EXPIRATION = "15m"
    REFRESH_TOKEN_EXPIRATION = "7d"
    # cheapest argon2 parameters; hashing cost is not under test
    PASSWORD_TIME_COST = 1
    PASSWORD_MEMORY_COST = 8


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    REFRESH_COOKIE_SECURE = True
    ENFORCE_SECRETS = True


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse to run production with dev secrets or a shared signing secret."""
    if not config.get("ENFORCE_SECRETS"):
        return
    access = config.get("JWT_SECRET")
    refresh = config.get("REFRESH_TOKEN_SECRET")
    if access in (None, "", DEFAULT_ACCESS_SECRET) or refresh in (None, "", DEFAULT_REFRESH_SECRET):
        raise InternalError("JWT_SECRET and REFRESH_TOKEN_SECRET must be set in production")
    if access == refresh:
        raise InternalError("JWT_SECRET and REFRESH_TOKEN_SECRET must differ")
