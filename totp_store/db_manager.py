import logging
import os
import sqlite3
from datetime import datetime
from typing import Callable, Optional

from totp_core.otp_core import generate_base32_secret
from totp_core.totp import TOTPConfig
from .setup_database import DATABASE_FILE, setup_database
# Used in: totp_api/api_v2.py, totp_core/otp_cli.py

logger = logging.getLogger(__name__)

# check(config, previous_timestamp) -> accepted timestamp or None
VerificationCheck = Callable[[dict, Optional[int]], Optional[int]]

_USER_COLUMNS = "id, username, secret_key, digits, digest, period, epoch, last_timestamp"


def get_db_connection(db_path: str = DATABASE_FILE):
    """Open the database, creating the schema on first use"""
    if not os.path.exists(db_path):
        setup_database(db_path)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # rows behave like dicts
    return conn


def _row_to_config(row) -> dict:
    return {
        'secret': row['secret_key'],
        'digits': row['digits'],
        'digest': row['digest'],
        'period': row['period'],
        'epoch': row['epoch'],
    }


def add_new_user(username: str, digits: int = 6, period: int = 30, epoch: int = 0,
                 digest: str = 'sha1', db_path: str = DATABASE_FILE) -> tuple[bool, str]:
    """
    Create a user with a fresh random secret.

    Returns (True, secret) or (False, error message) if the user exists.
    Invalid parameters raise ConfigurationError before anything is written.
    """
    secret = generate_base32_secret()
    config = TOTPConfig(secret=secret, digits=digits, digest=digest, period=period, epoch=epoch)

    conn = get_db_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO users (username, secret_key, digits, digest, period, epoch)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (username, config.secret, config.digits, config.digest, config.period, config.epoch)
        )
        conn.commit()
        logger.info("User '%s' added (digits=%d, period=%d, epoch=%d, digest=%s)",
                    username, config.digits, config.period, config.epoch, config.digest)
        return (True, secret)
    except sqlite3.IntegrityError:
        error_message = f"User '{username}' already exists."
        logger.warning(error_message)
        return (False, error_message)
    finally:
        conn.close()


def get_user_config(username: str, db_path: str = DATABASE_FILE) -> dict | None:
    """TOTP parameters of a user as {secret, digits, digest, period, epoch}"""
    conn = get_db_connection(db_path)
    try:
        row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()

    if row:
        return _row_to_config(row)

    logger.info("User '%s' not found in the database.", username)
    return None


def get_user_id(username: str, db_path: str = DATABASE_FILE) -> int | None:
    conn = get_db_connection(db_path)
    try:
        row = conn.execute("SELECT id FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()
    return row['id'] if row else None


def user_exists(username: str, db_path: str = DATABASE_FILE) -> bool:
    return get_user_id(username, db_path) is not None


def get_last_timestamp(username: str, db_path: str = DATABASE_FILE) -> int | None:
    """Replay watermark of a user, None if nothing was accepted yet"""
    conn = get_db_connection(db_path)
    try:
        row = conn.execute("SELECT last_timestamp FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()
    return row['last_timestamp'] if row else None


def get_otp_attempts(username: str, db_path: str = DATABASE_FILE) -> list[dict]:
    """Attempts of a user, oldest first"""
    conn = get_db_connection(db_path)
    try:
        rows = conn.execute(
            """SELECT a.otp_code, a.is_success, a.accepted_timestamp, a.attempted_at
               FROM otp_attempts a JOIN users u ON u.id = a.user_id
               WHERE u.username = ? ORDER BY a.id""",
            (username,)
        ).fetchall()
    finally:
        conn.close()
    return [
        {
            'otp_code': row['otp_code'],
            'is_success': bool(row['is_success']),
            'accepted_timestamp': row['accepted_timestamp'],
            'attempted_at': row['attempted_at'],
        }
        for row in rows
    ]


def record_verification(username: str, otp_code: str, check: VerificationCheck,
                        db_path: str = DATABASE_FILE) -> int | None:
    """
    Read watermark -> verify -> persist, as one write transaction.

    BEGIN IMMEDIATE takes the database write lock up front, so two
    concurrent verifications for the same user cannot both read the old
    watermark and both accept the same code.

    check(config, previous_timestamp) does the actual verification and
    returns the accepted timestamp or None. The watermark only moves
    forward. Every call is logged in otp_attempts.

    Raises:
        LookupError: unknown user
        anything raised by check (the transaction is rolled back)
    """
    conn = get_db_connection(db_path)
    conn.isolation_level = None  # manual transaction control
    try:
        conn.execute("BEGIN IMMEDIATE")
        row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", (username,)).fetchone()
        if row is None:
            raise LookupError(f"User '{username}' not found.")

        accepted = check(_row_to_config(row), row['last_timestamp'])

        if accepted is not None:
            conn.execute(
                """UPDATE users SET last_timestamp = ?, last_login = ?
                   WHERE id = ? AND (last_timestamp IS NULL OR last_timestamp < ?)""",
                (accepted, datetime.now().strftime('%Y-%m-%d %H:%M:%S'), row['id'], accepted)
            )
        _insert_attempt(conn, row['id'], otp_code, accepted is not None, accepted)
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()

    if accepted is None:
        logger.info("OTP for '%s' rejected", username)
    else:
        logger.info("OTP for '%s' accepted at %d", username, accepted)
    return accepted


def _insert_attempt(conn, user_id, otp_code, is_success, accepted_timestamp):
    conn.execute(
        "INSERT INTO otp_attempts (user_id, otp_code, is_success, accepted_timestamp) VALUES (?, ?, ?, ?)",
        (user_id, otp_code, is_success, accepted_timestamp)
    )
