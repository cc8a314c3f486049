"""
TOTP API ROUTES - VERSION 2 (MULTI-USER)

Every endpoint takes the username in the URL.

Examples:
- POST /api/v2/init/alice            {"period": 30, "digits": 6}
- GET  /api/v2/totp/alice
- POST /api/v2/verify_totp/alice     {"code": "123456", "leeway": 10}

verify_totp keeps a replay watermark per user: once a code has been
accepted, the same code (or any code from the same or an earlier window)
is refused afterwards.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import BadRequest

from totp_core.otp_core import check_label
from totp_core.totp import TOTP, TOTPConfig
from totp_store.db_manager import (
    add_new_user,
    get_last_timestamp,
    get_otp_attempts,
    get_user_config,
    record_verification,
    user_exists,
)

logger = logging.getLogger(__name__)

otp_bp_v2 = Blueprint('otp_v2', __name__, url_prefix='/api/v2')


def _db_path() -> str:
    return current_app.config["DATABASE_FILE"]


def _load_totp(user):
    """TOTP for a stored user, None if the user does not exist"""
    cfg = get_user_config(user, db_path=_db_path())
    if cfg is None:
        return None
    return TOTP(TOTPConfig.from_dict(cfg), current_app.config["TOTP_CLOCK"])


def _optional_int(data: dict, key: str, default=None):
    value = data.get(key, default)
    if value is None:
        return None
    # bool is an int subclass, refuse it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest(f"'{key}' must be an integer")
    return value


@otp_bp_v2.route('/init/<string:user>', methods=['POST'])
def init_user(user):
    """
    Create a secret for a user.
    Endpoint: POST /api/v2/init/<username>
    Body (all optional): {"digits": 6, "period": 30, "epoch": 0, "digest": "sha1", "issuer": "..."}
    """
    data = request.get_json(silent=True) or {}
    issuer = data.get('issuer', current_app.config["TOTP_ISSUER"])
    if issuer is not None and not isinstance(issuer, str):
        raise BadRequest("'issuer' must be a string")
    check_label(user, issuer)

    if user_exists(user, db_path=_db_path()):
        return jsonify({"error": f"User '{user}' already exists"}), 400

    success, result = add_new_user(
        user,
        digits=data.get('digits', 6),
        period=data.get('period', 30),
        epoch=data.get('epoch', 0),
        digest=data.get('digest', 'sha1'),
        db_path=_db_path(),
    )
    if not success:
        return jsonify({"error": result}), 400

    totp = _load_totp(user)
    return jsonify({
        "message": f"Secret created for user '{user}'",
        "secret": result,
        "totp_uri": totp.provisioning_uri(user, issuer=issuer),
        "user": user
    }), 201


@otp_bp_v2.route('/totp/<string:user>', methods=['GET'])
def get_totp_for_user(user):
    """
    Current TOTP code of a user.
    Endpoint: GET /api/v2/totp/<username>
    """
    totp = _load_totp(user)
    if totp is None:
        return jsonify({"error": f"User '{user}' not found. Please initialize first."}), 404

    return jsonify({
        "code": totp.now(),
        "remaining": totp.expires_in(),
        "period": totp.period,
        "user": user
    })


@otp_bp_v2.route('/verify_totp/<string:user>', methods=['POST'])
def verify_totp_for_user(user):
    """
    Verify a TOTP code and consume its window.
    Endpoint: POST /api/v2/verify_totp/<username>
    Body: {"code": "123456", "leeway": 10, "timestamp": 1700000000}
      leeway    - optional, seconds of allowed drift (< period), default TOTP_LEEWAY
      timestamp - optional, verification time, default server clock

    Output: {"valid": true, "timestamp": 1700000000}  or  {"valid": false, "timestamp": null}
    """
    data = request.get_json(silent=True)
    if not data or "code" not in data:
        return jsonify({"error": "OTP code is required in JSON body"}), 400

    code = str(data["code"])
    leeway = _optional_int(data, "leeway", current_app.config["TOTP_LEEWAY"] or None)
    timestamp = _optional_int(data, "timestamp")
    clock = current_app.config["TOTP_CLOCK"]

    def check(cfg, previous_timestamp):
        totp = TOTP(TOTPConfig.from_dict(cfg), clock)
        return totp.verify_with_previous_timestamp(code, timestamp, leeway, previous_timestamp)

    try:
        accepted = record_verification(user, code, check, db_path=_db_path())
    except LookupError:
        return jsonify({"error": f"User '{user}' not found."}), 404

    return jsonify({"valid": accepted is not None, "timestamp": accepted, "user": user})


@otp_bp_v2.route('/otpauth_uri/<string:user>', methods=['GET'])
def get_otpauth_uri_for_user(user):
    """
    otpauth:// URI for a user.
    Endpoint: GET /api/v2/otpauth_uri/<username>?issuer=MyApp
    """
    totp = _load_totp(user)
    if totp is None:
        return jsonify({"error": f"User '{user}' not found."}), 404

    issuer = request.args.get('issuer', current_app.config["TOTP_ISSUER"])
    return jsonify({"totp_uri": totp.provisioning_uri(user, issuer=issuer), "user": user})


@otp_bp_v2.route('/attempts/<string:user>', methods=['GET'])
def get_attempts_for_user(user):
    """
    Verification history and current replay watermark of a user.
    Endpoint: GET /api/v2/attempts/<username>
    """
    if not user_exists(user, db_path=_db_path()):
        return jsonify({"error": f"User '{user}' not found."}), 404

    return jsonify({
        "user": user,
        "last_timestamp": get_last_timestamp(user, db_path=_db_path()),
        "attempts": get_otp_attempts(user, db_path=_db_path()),
    })
