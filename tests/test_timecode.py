import pytest

from totp_core import TimecodeError, resolve_timecode


@pytest.mark.parametrize("timestamp, expected", [
    (0, 0),
    (29, 0),
    (30, 1),
    (59, 1),
    (60, 2),
    (1111111109, 37037036),
])
def test_resolve_timecode(timestamp, expected):
    assert resolve_timecode(timestamp, 0, 30) == expected


def test_same_window_for_whole_period():
    base = resolve_timecode(90, 0, 30)
    for k in range(30):
        assert resolve_timecode(90 + k, 0, 30) == base
    assert resolve_timecode(120, 0, 30) == base + 1


def test_non_decreasing():
    codes = [resolve_timecode(t, 7, 13) for t in range(7, 500)]
    assert codes == sorted(codes)


def test_epoch_offset():
    assert resolve_timecode(100, 100, 30) == 0
    assert resolve_timecode(129, 100, 30) == 0
    assert resolve_timecode(130, 100, 30) == 1


def test_timestamp_before_epoch_is_an_error():
    with pytest.raises(TimecodeError):
        resolve_timecode(99, 100, 30)


def test_timecode_error_is_value_error():
    with pytest.raises(ValueError):
        resolve_timecode(0, 1, 30)
