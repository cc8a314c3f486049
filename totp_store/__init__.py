"""
SQLite storage for TOTP users: secret + parameters, the replay
watermark (last accepted timestamp) and a log of verification attempts.
"""

from .db_manager import (
    add_new_user,
    get_db_connection,
    get_last_timestamp,
    get_otp_attempts,
    get_user_config,
    get_user_id,
    record_verification,
    user_exists,
)
from .setup_database import DATABASE_FILE, setup_database

__all__ = [
    'DATABASE_FILE',
    'add_new_user',
    'get_db_connection',
    'get_last_timestamp',
    'get_otp_attempts',
    'get_user_config',
    'get_user_id',
    'record_verification',
    'setup_database',
    'user_exists',
]
