"""
timecode.py — timestamp -> TOTP timecode (RFC 6238 section 4.2).

    T = floor((timestamp - T0) / X)

T0 is the epoch offset, X the period (step) in seconds.
"""

from .errors import TimecodeError


def resolve_timecode(timestamp: int, epoch: int, period: int) -> int:
    """
    Resolve a timestamp to the step index it falls into.

    Arguments:
        timestamp: seconds since the Unix epoch
        epoch: T0, already validated (>= 0)
        period: X, already validated (> 0)

    Raises:
        TimecodeError: if timestamp is earlier than epoch
    """
    # floor division, so timestamp < epoch gives a negative step
    timecode = (timestamp - epoch) // period
    if timecode < 0:
        raise TimecodeError(
            f"Timestamp {timestamp} is earlier than the epoch {epoch}."
        )
    return timecode
