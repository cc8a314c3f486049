"""
totp.py — RFC 6238 TOTP with leeway windows and replay prevention.

TOTP is HOTP with counter = floor((timestamp - epoch) / period).

Verification probes at most three instants, [T - leeway, T, T + leeway],
in that order, and returns the first instant whose code matches. With a
previous-timestamp watermark, any instant whose timecode is not strictly
after the watermark's timecode is skipped, so an accepted code cannot be
accepted twice. Persisting the watermark is the caller's job
(see totp_store.db_manager.record_verification).

Example:
    >>> from totp_core import TOTP, SystemClock
    >>> totp = TOTP.create("JBSWY3DPEHPK3PXP", clock=SystemClock())
    >>> accepted = totp.verify_with_previous_timestamp(code, leeway=10, previous_timestamp=last)
    >>> if accepted is not None:
    ...     last = accepted
"""

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional
import logging

from .clock import Clock
from .errors import ConfigurationError, InputValidationError
from .otp_core import (
    DEFAULT_DIGEST,
    DEFAULT_DIGITS,
    SUPPORTED_DIGESTS,
    compare_otp,
    decode_secret,
    format_otpauth_uri,
    generate_base32_secret,
    hotp,
)
from .timecode import resolve_timecode

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 30         # seconds per step
DEFAULT_EPOCH = 0           # T0


@dataclass(frozen=True)
class TOTPConfig:
    """
    Validated TOTP parameters.

    Invariants: period > 0, epoch >= 0, digits > 0, digest supported,
    secret is valid Base32. Anything else raises ConfigurationError.
    """

    secret: str
    digits: int = DEFAULT_DIGITS
    digest: str = DEFAULT_DIGEST
    period: int = DEFAULT_PERIOD
    epoch: int = DEFAULT_EPOCH

    def __post_init__(self):
        decode_secret(self.secret)

        # stored values may arrive as strings (query args, sqlite), coerce once
        try:
            digits, period, epoch = int(self.digits), int(self.period), int(self.epoch)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("digits, period and epoch must be integers.") from e
        digest = str(self.digest).lower()

        if digits <= 0:
            raise ConfigurationError("Digits must be at least 1.")
        if digest not in SUPPORTED_DIGESTS:
            raise ConfigurationError(
                f"The digest {self.digest!r} is not supported, use one of {', '.join(SUPPORTED_DIGESTS)}."
            )
        if period <= 0:
            raise ConfigurationError("Period must be at least 1.")
        if epoch < 0:
            raise ConfigurationError("Epoch must be greater than or equal to 0.")

        object.__setattr__(self, "digits", digits)
        object.__setattr__(self, "digest", digest)
        object.__setattr__(self, "period", period)
        object.__setattr__(self, "epoch", epoch)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TOTPConfig":
        """Build from a stored row / JSON body; missing keys take defaults."""
        return cls(
            secret=data["secret"],
            digits=data.get("digits", DEFAULT_DIGITS),
            digest=data.get("digest", DEFAULT_DIGEST),
            period=data.get("period", DEFAULT_PERIOD),
            epoch=data.get("epoch", DEFAULT_EPOCH),
        )


class TOTP:
    """
    Time-based OTP bound to one configuration and one clock.

    The clock is required: pass SystemClock() in production and a
    FrozenClock in tests.
    """

    def __init__(self, config: TOTPConfig, clock: Clock):
        self.config = config
        self.clock = clock

    @classmethod
    def create(
        cls,
        secret: Optional[str] = None,
        *,
        clock: Clock,
        period: int = DEFAULT_PERIOD,
        digest: str = DEFAULT_DIGEST,
        digits: int = DEFAULT_DIGITS,
        epoch: int = DEFAULT_EPOCH,
    ) -> "TOTP":
        """Build a TOTP; a random secret is generated when none is given."""
        if secret is None:
            secret = generate_base32_secret()
        config = TOTPConfig(secret=secret, digits=digits, digest=digest, period=period, epoch=epoch)
        return cls(config, clock)

    @classmethod
    def generate(cls, clock: Clock) -> "TOTP":
        return cls.create(clock=clock)

    # --- configuration -----------------------------------------------------
    @property
    def secret(self) -> str:
        return self.config.secret

    @property
    def digits(self) -> int:
        return self.config.digits

    @property
    def digest(self) -> str:
        return self.config.digest

    @property
    def period(self) -> int:
        return self.config.period

    @property
    def epoch(self) -> int:
        return self.config.epoch

    # --- generation --------------------------------------------------------
    def timecode(self, timestamp: int) -> int:
        return resolve_timecode(timestamp, self.epoch, self.period)

    def at(self, timestamp: int) -> str:
        """The code valid at `timestamp`."""
        return hotp(self.secret, self.timecode(timestamp), self.digits, self.digest)

    def now(self) -> str:
        return self.at(self._current_timestamp())

    def expires_in(self) -> int:
        """Seconds until the current code rolls over (1..period)."""
        timestamp = self._current_timestamp()
        return self.period - ((timestamp - self.epoch) % self.period)

    # --- verification ------------------------------------------------------
    def verify(self, otp: str, timestamp: Optional[int] = None, leeway: Optional[int] = None) -> bool:
        """
        True if `otp` is valid at `timestamp` (default: clock time).

        leeway (seconds) also probes timestamp - leeway and timestamp + leeway.
        """
        return self.verify_with_previous_timestamp(otp, timestamp, leeway, None) is not None

    def verify_with_previous_timestamp(
        self,
        otp: str,
        timestamp: Optional[int] = None,
        leeway: Optional[int] = None,
        previous_timestamp: Optional[int] = None,
    ) -> Optional[int]:
        """
        Verify `otp` and refuse codes from already consumed windows.

        Arguments:
            otp: code entered by the user
            timestamp: verification time, defaults to clock.now()
            leeway: tolerance in seconds, 0 <= abs(leeway) < period
            previous_timestamp: timestamp returned by the last successful
                verification; windows at or before its timecode are skipped.
                None or <= 0 disables the check.

        Returns:
            The matching candidate timestamp, or None if nothing matched.
            0 is a valid accepted timestamp, test with `is not None`.

        Raises:
            InputValidationError: otp is not a str, negative timestamp,
                leeway >= period, or timestamp < leeway. Raised before any
                code is compared.
            TimecodeError: a candidate falls before the epoch.
        """
        if not isinstance(otp, str):
            raise InputValidationError("The OTP must be a string.")
        if timestamp is None:
            timestamp = self._current_timestamp()
        if timestamp < 0:
            raise InputValidationError("Timestamp must be at least 0.")

        if leeway is None:
            return self._verify_at_timestamps(otp, [timestamp], previous_timestamp)

        leeway = abs(leeway)
        if leeway >= self.period:
            raise InputValidationError("The leeway must be lower than the TOTP period.")
        if timestamp - leeway < 0:
            raise InputValidationError("The timestamp must be greater than or equal to the leeway.")

        return self._verify_at_timestamps(
            otp,
            [timestamp - leeway, timestamp, timestamp + leeway],
            previous_timestamp,
        )

    def _verify_at_timestamps(
        self,
        otp: str,
        timestamps: Iterable[int],
        previous_timestamp: Optional[int],
    ) -> Optional[int]:
        previous_timecode = None
        if previous_timestamp is not None and previous_timestamp > 0:
            previous_timecode = self.timecode(previous_timestamp)

        for timestamp in timestamps:
            if previous_timecode is not None and previous_timecode >= self.timecode(timestamp):
                logger.debug("Skipping timestamp %d: window already used", timestamp)
                continue

            if compare_otp(self.at(timestamp), otp):
                return timestamp

        return None

    # --- provisioning ------------------------------------------------------
    def provisioning_uri(self, label: str, issuer: Optional[str] = None) -> str:
        """
        otpauth://totp/ URI for authenticator apps.

        Only non-default parameters are emitted (period 30, epoch 0,
        6 digits and SHA1 are implied).
        """
        params = {"secret": self.secret}
        if self.digits != DEFAULT_DIGITS:
            params["digits"] = self.digits
        if self.digest != DEFAULT_DIGEST:
            params["algorithm"] = self.digest.upper()
        if self.period != DEFAULT_PERIOD:
            params["period"] = self.period
        if self.epoch != DEFAULT_EPOCH:
            params["epoch"] = self.epoch
        return format_otpauth_uri("totp", label, params, issuer=issuer)

    def _current_timestamp(self) -> int:
        timestamp = self.clock.now()
        if timestamp < 0:
            raise InputValidationError("The clock must return a non-negative timestamp.")
        return timestamp
