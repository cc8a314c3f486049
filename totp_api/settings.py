"""
Service configuration, read from the environment (and a .env file if present).

    TOTP_SECRET_KEY     Flask secret key
    TOTP_DATABASE_FILE  SQLite file (default database/totp_database.db)
    TOTP_ISSUER         issuer shown in authenticator apps (default MyWebApp)
    TOTP_LEEWAY         default verification leeway in seconds, 0 = strict
"""

import os

from dotenv import load_dotenv

from totp_core.errors import ConfigurationError
from totp_store.setup_database import DATABASE_FILE

load_dotenv()


def _int_env(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def load_settings() -> dict:
    return {
        "SECRET_KEY": os.getenv("TOTP_SECRET_KEY", "otp_demo_secret_key"),
        "DATABASE_FILE": os.getenv("TOTP_DATABASE_FILE", DATABASE_FILE),
        "TOTP_ISSUER": os.getenv("TOTP_ISSUER", "MyWebApp"),
        "TOTP_LEEWAY": _int_env("TOTP_LEEWAY", "0"),
    }
