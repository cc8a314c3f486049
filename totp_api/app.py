"""
FLASK APP ENTRY POINT - TOTP VERIFICATION SERVER
==================================================

Builds the Flask app, enables CORS and registers the /api/v2 blueprint.

Run:
    python -m totp_api.app
    → http://localhost:5000
"""
import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from totp_core.clock import SystemClock
from totp_core.errors import OTPError
from totp_store.setup_database import setup_database
from .settings import load_settings

logger = logging.getLogger(__name__)


def create_app(test_config: dict | None = None) -> Flask:
    """
    Application factory.

    test_config overrides the environment settings; TOTP_CLOCK can be set
    there to inject a fixed clock.
    """
    app = Flask(__name__)
    app.config.update(load_settings())
    app.config["TOTP_CLOCK"] = SystemClock()
    if test_config:
        app.config.update(test_config)

    # CORS so a frontend on another origin can call the API
    CORS(app)

    setup_database(app.config["DATABASE_FILE"])

    from .api_v2 import otp_bp_v2
    app.register_blueprint(otp_bp_v2)

    @app.errorhandler(OTPError)
    def handle_otp_error(e):
        # bad parameters / leeway / timestamp from the client
        logger.info("Rejected request: %s", e)
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(BadRequest)
    def handle_bad_request(e):
        return jsonify({"error": e.description}), 400

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            "service": "totp-window",
            "endpoints": [
                "POST /api/v2/init/<user>",
                "GET  /api/v2/totp/<user>",
                "POST /api/v2/verify_totp/<user>",
                "GET  /api/v2/otpauth_uri/<user>",
                "GET  /api/v2/attempts/<user>",
            ],
        })

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True, host='0.0.0.0', port=5000)
