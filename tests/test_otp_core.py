import base64

import pytest

from totp_core import ConfigurationError, InputValidationError, TimecodeError
from totp_core.otp_core import (
    check_label,
    compare_otp,
    decode_secret,
    format_otpauth_uri,
    generate_base32_secret,
    hotp,
)

from .conftest import SHA1_SECRET


# RFC 4226 Appendix D
@pytest.mark.parametrize("counter, expected", list(enumerate([
    "755224", "287082", "359152", "969429", "338314",
    "254676", "287922", "162583", "399871", "520489",
])))
def test_hotp_rfc4226_vectors(counter, expected):
    assert hotp(SHA1_SECRET, counter) == expected


def test_hotp_negative_counter():
    with pytest.raises(TimecodeError):
        hotp(SHA1_SECRET, -1)


def test_hotp_unsupported_digest():
    with pytest.raises(ConfigurationError):
        hotp(SHA1_SECRET, 0, digest="md5")


def test_decode_secret_without_padding_and_lowercase():
    assert decode_secret("gezdgnbvgy3tqojqgezdgnbvgy3tqojq") == b"12345678901234567890"
    # 12 bytes -> 20 chars + 4 padding characters normally
    assert decode_secret("GEZDGNBVGY3TQOJQGEZA") == b"123456789012"


@pytest.mark.parametrize("secret", ["", "not-base32!"])
def test_decode_secret_invalid(secret):
    with pytest.raises(ConfigurationError):
        decode_secret(secret)


def test_generate_base32_secret():
    secret = generate_base32_secret()
    assert len(secret) == 32
    assert "=" not in secret
    assert len(base64.b32decode(secret)) == 20
    assert generate_base32_secret() != secret


def test_compare_otp():
    assert compare_otp("123456", "123456")
    assert not compare_otp("123456", "123457")
    assert not compare_otp("123456", "12345")
    assert not compare_otp("123456", "12345é")


@pytest.mark.parametrize("candidate", [123456, None, b"123456"])
def test_compare_otp_refuses_non_strings(candidate):
    with pytest.raises(InputValidationError, match="The OTP must be a string."):
        compare_otp("123456", candidate)


def test_format_otpauth_uri():
    uri = format_otpauth_uri("totp", "alice@example.com", {"secret": "JBSWY3DPEHPK3PXP"}, issuer="My App")
    assert uri == "otpauth://totp/My%20App:alice%40example.com?issuer=My%20App&secret=JBSWY3DPEHPK3PXP"


def test_format_otpauth_uri_without_issuer():
    uri = format_otpauth_uri("totp", "bob", {"secret": "JBSWY3DPEHPK3PXP", "digits": 8})
    assert uri == "otpauth://totp/bob?digits=8&secret=JBSWY3DPEHPK3PXP"


@pytest.mark.parametrize("label, issuer", [("", None), ("a:b", None), ("bob", "x:y")])
def test_format_otpauth_uri_rejects_bad_labels(label, issuer):
    with pytest.raises(ConfigurationError):
        format_otpauth_uri("totp", label, {}, issuer=issuer)


def test_check_label():
    check_label("alice", "ACME")
    check_label("alice")
    with pytest.raises(ConfigurationError, match="colon"):
        check_label("alice", "Bad:Issuer")
