import base64

import pytest

from totp_api import create_app
from totp_core import TOTP, FrozenClock

# RFC 6238 Appendix B seeds
SHA1_SECRET = base64.b32encode(b"12345678901234567890").decode()
SHA256_SECRET = base64.b32encode(b"12345678901234567890123456789012").decode()
SHA512_SECRET = base64.b32encode(b"1234567890" * 6 + b"1234").decode()


@pytest.fixture
def clock():
    return FrozenClock(0)


@pytest.fixture
def totp(clock):
    """period=30, epoch=0, 8 digits, RFC test secret"""
    return TOTP.create(SHA1_SECRET, clock=clock, digits=8)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "totp.db")


@pytest.fixture
def api_clock():
    return FrozenClock(1_700_000_000)


@pytest.fixture
def app(db_path, api_clock):
    return create_app({
        "TESTING": True,
        "DATABASE_FILE": db_path,
        "TOTP_CLOCK": api_clock,
        "TOTP_ISSUER": "TestIssuer",
        "TOTP_LEEWAY": 0,
    })


@pytest.fixture
def client(app):
    return app.test_client()
