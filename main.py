import json
import logging
import os
from time import perf_counter
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flasgger import Swagger
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE

load_dotenv()
from powerup.config import Config, missing_settings  # noqa: E402
from powerup.extensions import db  # noqa: E402
from powerup.api.dashboard.dashboard import dashboard_bp  # noqa: E402
from powerup.api.payments.payments import payments_bp  # noqa: E402
from powerup.api.people.instructors import instructors_bp  # noqa: E402
from powerup.api.people.members import members_bp  # noqa: E402
from powerup.api.people.users import users_bp  # noqa: E402
from powerup.api.subscriptions.plans import subscriptions_bp  # noqa: E402
from powerup.api.subscriptions.user_subscriptions import user_subscriptions_bp  # noqa: E402
from powerup.api.training.group_classes import group_classes_bp  # noqa: E402
from powerup.api.training.pt_sessions import pt_sessions_bp  # noqa: E402
from powerup.routes.auth import auth_bp  # noqa: E402

REDACTED_FIELDS = ("password",)


def _configure_logging(app):
    level = logging.DEBUG if app.debug else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app.logger.setLevel(level)


def _register_request_logging(app):
    @app.before_request
    def _log_request_start():
        g._start = perf_counter()
        g._rid = request.headers.get("x-request-id") or uuid4().hex[:8]
        app.logger.info(f"[{g._rid}] → {request.method} {request.path}")
        if request.method in ("POST", "PUT", "PATCH"):
            body = request.get_json(silent=True)
            if isinstance(body, dict):
                redacted = {
                    key: ("***" if key in REDACTED_FIELDS else value)
                    for key, value in body.items()
                }
                app.logger.debug(f"[{g._rid}] body={json.dumps(redacted, default=str)[:800]}")

    @app.after_request
    def _log_response(resp):
        dur_ms = (perf_counter() - g.get("_start", perf_counter())) * 1000
        app.logger.info(f"[{g.get('_rid', '-')}] ← {resp.status_code} {dur_ms:.1f}ms")
        resp.headers["x-request-id"] = g.get("_rid", "-")
        return resp


def _register_error_handlers(app):
    @app.errorhandler(IntegrityError)
    def _integrity_error(e):
        db.session.rollback()
        app.logger.error(f"[{g.get('_rid', '-')}] integrity error: {e.orig}")
        return jsonify({"status": "error", "message": "Database integrity error"}), 409

    @app.errorhandler(Exception)
    def _unhandled(e):
        if isinstance(e, HTTPException):
            # keep real HTTP codes (404, 405, ...) instead of turning them into 500s
            return jsonify({"status": "error", "message": e.description}), e.code
        db.session.rollback()
        app.logger.exception(f"[{g.get('_rid', '-')}] unhandled {type(e).__name__}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    missing = missing_settings(app.config)
    if missing:
        raise RuntimeError(f"Missing required settings: {', '.join(missing)}")

    _configure_logging(app)
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    db.init_app(app)

    # Determine host based on environment
    swagger_template = SWAGGER_TEMPLATE.copy()
    swagger_template["host"] = os.environ.get("API_HOST", "127.0.0.1:5000")
    Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)

    blueprints = [
        auth_bp,
        users_bp,
        instructors_bp,
        members_bp,
        subscriptions_bp,
        user_subscriptions_bp,
        payments_bp,
        group_classes_bp,
        pt_sessions_bp,
        dashboard_bp,
    ]
    for bp in blueprints:
        app.register_blueprint(bp)
        app.logger.debug(f"Registered blueprint {bp.name}")

    _register_request_logging(app)
    _register_error_handlers(app)

    @app.route("/")
    def home():
        """
        Root endpoint - API status
        ---
        tags:
          - Utility
        responses:
          200:
            description: API is running
        """
        return {"status": "ok", "message": "Backend is running!"}, 200

    app.logger.info(f"App created with {len(list(app.url_map.iter_rules()))} routes")
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
