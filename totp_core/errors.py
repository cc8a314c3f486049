"""
errors.py — exception types raised by the TOTP core.

All of them derive from ValueError, so code that already catches
ValueError around hotp()/decode_secret() keeps working.

- ConfigurationError   : bad period / epoch / digits / digest / secret
- InputValidationError : bad timestamp or leeway passed to a verify call
- TimecodeError        : a timestamp resolved to a negative timecode

"No match" is not an error: verify_with_previous_timestamp() returns None.
"""


class OTPError(ValueError):
    pass


class ConfigurationError(OTPError):
    pass


class InputValidationError(OTPError):
    pass


class TimecodeError(OTPError):
    pass
