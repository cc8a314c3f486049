"""
otp_core.py — HOTP primitives and helpers shared by the TOTP verifier.

Contents:
- Base32 secret generation / decoding
- RFC 4226 HOTP (HMAC + dynamic truncation), digest selectable
- constant-time OTP comparison
- otpauth:// URI formatting

These are pure functions, no file or network I/O. Window handling and
replay prevention live in totp.py.

Security notes:
- Secrets are 160-bit from pyotp (secrets module, CSPRNG), as RFC 4226 recommends.
- Always compare codes with compare_otp(), never with ==.
"""

from typing import Mapping, Optional
import base64
import binascii
import hmac
import struct
from urllib.parse import quote, urlencode

import pyotp

from .errors import ConfigurationError, InputValidationError, TimecodeError

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # RFC 4226 minimum / Google Authenticator default
DEFAULT_DIGEST = "sha1"
SECRET_LENGTH = 32          # Base32 chars, 160-bit secret
SUPPORTED_DIGESTS = ("sha1", "sha256", "sha512")


# --- Secrets ---------------------------------------------------------------
def generate_base32_secret() -> str:
    """
    Generate a random Base32 secret without '=' padding.

    Single source of new secrets for the library, the store and the CLI.

    Returns:
        str: upper-case Base32 string (32 characters for 20 bytes)
    """
    return pyotp.random_base32(length=SECRET_LENGTH)


def decode_secret(secret_b32: str) -> bytes:
    """
    Decode a Base32 secret into raw key bytes.

    Padding is optional and case is ignored, so secrets copied out of
    authenticator apps ("jbsw y3dp ...") decode too once spaces are removed.

    Raises:
        ConfigurationError: if the secret is empty or not valid Base32
    """
    secret = secret_b32.replace(" ", "").upper()
    if not secret:
        raise ConfigurationError("The secret must not be empty.")
    secret += "=" * (-len(secret) % 8)
    try:
        return base64.b32decode(secret, casefold=True)
    except binascii.Error as e:
        raise ConfigurationError("Invalid Base32 secret") from e


# --- RFC 4226 --------------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """8-byte big-endian counter, e.g. 1 -> b'\\x00...\\x01'."""
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    RFC 4226 dynamic truncation.

    offset = low nibble of the last byte; take 4 bytes from there and
    clear the sign bit -> 31-bit unsigned integer.
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


def hotp(
    secret_b32: str,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    digest: str = DEFAULT_DIGEST,
) -> str:
    """
    HOTP code for one counter value (for TOTP the counter is the timecode).

    Steps:
    1. Base32-decode secret -> key
    2. msg = 8-byte big-endian counter
    3. HMAC-<digest>(key, msg)
    4. dynamic truncation -> dbc
    5. dbc % 10^digits, zero-padded

    Arguments:
        secret_b32: Base32 secret
        counter: non-negative counter / timecode
        digits: length of the code
        digest: one of SUPPORTED_DIGESTS

    Raises:
        ConfigurationError: bad secret or digest
        TimecodeError: negative counter
    """
    if counter < 0:
        raise TimecodeError("The counter must be at least 0.")
    if digest not in SUPPORTED_DIGESTS:
        raise ConfigurationError(f"Unsupported digest {digest!r}")

    key = decode_secret(secret_b32)
    mac = hmac.new(key, int_to_bytes(counter), digest).digest()
    otp_val = dynamic_truncate(mac) % (10 ** digits)
    return str(otp_val).zfill(digits)


def compare_otp(expected: str, candidate: str) -> bool:
    """
    Constant-time comparison of two OTP strings.

    Both sides are UTF-8 encoded first: hmac.compare_digest refuses
    non-ASCII str, and user input can contain anything.

    Raises:
        InputValidationError: either side is not a str
    """
    if not isinstance(expected, str) or not isinstance(candidate, str):
        raise InputValidationError("The OTP must be a string.")
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


# --- otpauth URI -----------------------------------------------------------
def check_label(label: str, issuer: Optional[str] = None) -> None:
    """Raise ConfigurationError if label / issuer can't go into an otpauth URI"""
    if not label:
        raise ConfigurationError("The label must not be empty.")
    if ":" in label or (issuer and ":" in issuer):
        raise ConfigurationError("Label and issuer must not contain a colon.")


def format_otpauth_uri(
    kind: str,
    label: str,
    params: Mapping[str, object],
    issuer: Optional[str] = None,
) -> str:
    """
    Build an otpauth:// URI (Key Uri Format used by Google Authenticator).

        otpauth://{kind}/{issuer}:{label}?issuer=...&secret=...&...

    Arguments:
        kind: "totp" or "hotp"
        label: account name, e.g. "alice@example.com"
        params: query parameters; emitted sorted by key
        issuer: optional issuer, prefixed to the label and added as a parameter

    Raises:
        ConfigurationError: empty label, or a ':' in label / issuer
    """
    check_label(label, issuer)

    query = dict(params)
    path = quote(label)
    if issuer:
        query["issuer"] = issuer
        path = f"{quote(issuer)}:{path}"
    return f"otpauth://{kind}/{path}?{urlencode(sorted(query.items()), quote_via=quote)}"
