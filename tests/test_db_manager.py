import threading

import pytest

from totp_core import TOTP, ConfigurationError, FrozenClock, InputValidationError, TOTPConfig
from totp_core.otp_core import decode_secret
from totp_store import (
    add_new_user,
    get_last_timestamp,
    get_otp_attempts,
    get_user_config,
    get_user_id,
    record_verification,
    user_exists,
)


def test_add_new_user(db_path):
    ok, secret = add_new_user("alice", period=60, db_path=db_path)
    assert ok
    assert len(secret) == 32
    assert len(decode_secret(secret)) == 20
    assert user_exists("alice", db_path=db_path)
    assert get_user_id("alice", db_path=db_path) == 1
    assert get_user_config("alice", db_path=db_path) == {
        "secret": secret, "digits": 6, "digest": "sha1", "period": 60, "epoch": 0,
    }
    assert get_last_timestamp("alice", db_path=db_path) is None


def test_add_existing_user(db_path):
    add_new_user("alice", db_path=db_path)
    ok, message = add_new_user("alice", db_path=db_path)
    assert not ok
    assert "already exists" in message


def test_add_user_with_invalid_parameters(db_path):
    with pytest.raises(ConfigurationError):
        add_new_user("alice", period=0, db_path=db_path)
    assert not user_exists("alice", db_path=db_path)


def test_unknown_user(db_path):
    assert get_user_config("nobody", db_path=db_path) is None
    assert get_user_id("nobody", db_path=db_path) is None
    assert get_last_timestamp("nobody", db_path=db_path) is None
    with pytest.raises(LookupError):
        record_verification("nobody", "123456", lambda cfg, prev: 1, db_path=db_path)


def test_record_verification_moves_watermark(db_path):
    add_new_user("alice", db_path=db_path)
    seen = []

    def check(cfg, previous_timestamp):
        seen.append(previous_timestamp)
        return 100

    assert record_verification("alice", "111111", check, db_path=db_path) == 100
    assert record_verification("alice", "222222", check, db_path=db_path) == 100
    assert seen == [None, 100]
    assert get_last_timestamp("alice", db_path=db_path) == 100


def test_watermark_never_moves_backwards(db_path):
    add_new_user("alice", db_path=db_path)
    record_verification("alice", "111111", lambda cfg, prev: 100, db_path=db_path)
    record_verification("alice", "222222", lambda cfg, prev: 50, db_path=db_path)
    assert get_last_timestamp("alice", db_path=db_path) == 100


def test_rejected_attempt_is_logged(db_path):
    add_new_user("alice", db_path=db_path)
    assert record_verification("alice", "000000", lambda cfg, prev: None, db_path=db_path) is None
    assert get_last_timestamp("alice", db_path=db_path) is None

    attempts = get_otp_attempts("alice", db_path=db_path)
    assert len(attempts) == 1
    assert attempts[0]["otp_code"] == "000000"
    assert attempts[0]["is_success"] is False
    assert attempts[0]["accepted_timestamp"] is None


def test_failing_check_rolls_back(db_path):
    add_new_user("alice", db_path=db_path)

    def check(cfg, previous_timestamp):
        raise InputValidationError("bad leeway")

    with pytest.raises(InputValidationError):
        record_verification("alice", "123456", check, db_path=db_path)
    assert get_otp_attempts("alice", db_path=db_path) == []
    assert get_last_timestamp("alice", db_path=db_path) is None


def test_same_code_cannot_be_used_twice(db_path):
    add_new_user("alice", db_path=db_path)
    clock = FrozenClock(1_700_000_000)
    config = TOTPConfig.from_dict(get_user_config("alice", db_path=db_path))
    code = TOTP(config, clock).now()

    def check(cfg, previous_timestamp):
        totp = TOTP(TOTPConfig.from_dict(cfg), clock)
        return totp.verify_with_previous_timestamp(code, leeway=10, previous_timestamp=previous_timestamp)

    assert record_verification("alice", code, check, db_path=db_path) == 1_700_000_000 - 10
    assert record_verification("alice", code, check, db_path=db_path) is None

    attempts = get_otp_attempts("alice", db_path=db_path)
    assert [a["is_success"] for a in attempts] == [True, False]


def test_concurrent_verifications_accept_code_once(db_path):
    add_new_user("alice", db_path=db_path)
    clock = FrozenClock(1_700_000_000)
    config = TOTPConfig.from_dict(get_user_config("alice", db_path=db_path))
    code = TOTP(config, clock).now()
    first_holds_lock = threading.Event()
    results = []

    def check(cfg, previous_timestamp):
        totp = TOTP(TOTPConfig.from_dict(cfg), clock)
        accepted = totp.verify_with_previous_timestamp(code, previous_timestamp=previous_timestamp)
        if not first_holds_lock.is_set():
            first_holds_lock.set()
            # keep the transaction open while the second verification starts
            threading.Event().wait(0.2)
        return accepted

    def verify():
        results.append(record_verification("alice", code, check, db_path=db_path))

    first = threading.Thread(target=verify)
    first.start()
    assert first_holds_lock.wait(5)
    second = threading.Thread(target=verify)
    second.start()
    first.join()
    second.join()

    assert sorted(results, key=lambda r: r is None) == [1_700_000_000, None]
    assert get_last_timestamp("alice", db_path=db_path) == 1_700_000_000
    assert [a["is_success"] for a in get_otp_attempts("alice", db_path=db_path)] == [True, False]
