import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

DATABASE_FILE = 'database/totp_database.db'


def setup_database(db_path: str = DATABASE_FILE):
    """Create the users / otp_attempts tables if they do not exist yet"""

    # make sure the parent directory exists
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    # One row per user: TOTP parameters + replay watermark.
    # last_timestamp is the timestamp returned by the last accepted verification.
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        secret_key TEXT NOT NULL,
        digits INTEGER NOT NULL DEFAULT 6,
        digest TEXT NOT NULL DEFAULT 'sha1',
        period INTEGER NOT NULL DEFAULT 30,
        epoch INTEGER NOT NULL DEFAULT 0,
        last_timestamp INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        last_login TIMESTAMP
    )
    ''')

    # Every verification attempt, accepted or not
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS otp_attempts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        otp_code TEXT,
        is_success BOOLEAN,
        accepted_timestamp INTEGER,
        attempted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id)
    )
    ''')

    conn.commit()
    conn.close()
    logger.info("Database ready at %s", db_path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    setup_database()
