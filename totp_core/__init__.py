"""
totp_core package
=================

TOTP generation and verification (RFC 6238 on top of RFC 4226 HOTP),
with a leeway window for clock drift and replay prevention through a
previous-timestamp watermark.

──────────────────────────────────────────────
Core algorithm
──────────────────────────────────────────────
- Timecode:
  T = floor((timestamp - epoch) / period)
  → timestamps earlier than epoch raise TimecodeError.

- Code at a timestamp:
  HOTP(secret, counter=T), default 6 digits, SHA-1, 30 s.

- Verification:
  candidates = [timestamp]                                   (no leeway)
             = [timestamp - leeway, timestamp, timestamp + leeway]
  with 0 <= leeway < period. First matching candidate wins and its
  timestamp is returned.

- Replay prevention:
  a candidate is skipped when timecode(previous_timestamp) >= its
  timecode. Store the returned timestamp and pass it back next time.

──────────────────────────────────────────────
Quick usage
──────────────────────────────────────────────
>>> from totp_core import TOTP, SystemClock
>>> totp = TOTP.create(clock=SystemClock())
>>> code = totp.now()
>>> totp.verify(code)
True
>>> accepted = totp.verify_with_previous_timestamp(code, leeway=10)
>>> totp.verify_with_previous_timestamp(code, leeway=10, previous_timestamp=accepted) is None
True
"""

from .clock import Clock, FrozenClock, SystemClock
from .errors import ConfigurationError, InputValidationError, OTPError, TimecodeError
from .otp_core import (
    check_label,
    compare_otp,
    format_otpauth_uri,
    generate_base32_secret,
    hotp,
)
from .timecode import resolve_timecode
from .totp import DEFAULT_EPOCH, DEFAULT_PERIOD, TOTP, TOTPConfig

__all__ = [
    "Clock",
    "FrozenClock",
    "SystemClock",
    "OTPError",
    "ConfigurationError",
    "InputValidationError",
    "TimecodeError",
    "check_label",
    "compare_otp",
    "format_otpauth_uri",
    "generate_base32_secret",
    "hotp",
    "resolve_timecode",
    "DEFAULT_EPOCH",
    "DEFAULT_PERIOD",
    "TOTP",
    "TOTPConfig",
]
