"""
Flask application factory for the Cyphire marketplace API.

This module wires together:
- Per-request workflow services on ``flask.g``
- The JSON blueprints under /api (auth, users, tasks, payments, workrooms,
  help, admin, intellectuals)
- Error rendering for domain and validation errors
- The Socket.IO channel used for workroom push

To run the server:
    cyphire serve

Or directly:
    python -m cyphire.api.routes
"""

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, g, jsonify, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from .. import __version__
from ..config import Settings, load_settings
from ..errors import CyphireError
from ..gateway import RazorpayGateway
from ..logging_setup import setup_logging
from ..media import MediaStore
from ..workflows import (
    AccountManager,
    HelpDesk,
    IntellectualsProgramme,
    PaymentProcessor,
    TaskManager,
    WorkroomManager,
)
from . import admin, auth, help_center, intellectuals, payments, tasks, users, workrooms
from .realtime import register_socket_handlers
from .security import RateLimiter


logger = logging.getLogger(__name__)

BLUEPRINTS = (
    auth.bp,
    users.bp,
    tasks.bp,
    payments.bp,
    workrooms.bp,
    help_center.bp,
    admin.bp,
    intellectuals.bp,
)


def create_app(
    data_dir: Path = None,
    settings: Optional[Settings] = None,
    gateway: Optional[RazorpayGateway] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        data_dir: Directory holding the JSON collections (overrides settings)
        settings: Runtime settings; loaded from YAML/env when omitted
        gateway: Payment gateway; built from settings when omitted
    """
    settings = settings or load_settings()
    if data_dir is not None:
        settings.data_dir = Path(data_dir)
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["DATA_DIR"] = settings.data_dir
    app.config["SECRET_KEY"] = settings.jwt_secret
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    CORS(app, origins=settings.allowed_origins, supports_credentials=True, max_age=3600)

    app.extensions["cyphire_rate_limiter"] = RateLimiter()
    gateway = gateway or RazorpayGateway(
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        currency=settings.currency,
    )
    media = MediaStore(settings.uploads_dir)

    socketio = SocketIO(
        app,
        cors_allowed_origins=settings.allowed_origins,
        async_mode="threading",
    )
    register_socket_handlers(socketio)

    def emit(event: str, payload: dict, room: str) -> None:
        socketio.emit(event, payload, to=room)

    # Initialize services
    @app.before_request
    def init_services():
        data_dir = settings.data_dir
        g.media = media
        g.accounts = AccountManager(data_dir, settings, media)
        g.tasks = TaskManager(data_dir, settings, media)
        g.workrooms = WorkroomManager(data_dir, settings, media, emit=emit)
        g.payments = PaymentProcessor(data_dir, settings, gateway=gateway, media=media)
        g.help_desk = HelpDesk(data_dir, settings)
        g.intellectuals = IntellectualsProgramme(data_dir, settings)

    # === Errors ===

    @app.errorhandler(CyphireError)
    def handle_domain_error(error: CyphireError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in e["loc"]),
                "message": e["msg"],
            }
            for e in error.errors()
        ]
        return jsonify({"error": "Validation failed", "details": details}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"error": error.description or error.name}), error.code

    # === Health Check ===

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy", "version": __version__})

    # === Uploaded files ===

    @app.route("/uploads/<path:filename>", methods=["GET"])
    def uploaded_file(filename: str):
        return send_from_directory(settings.uploads_dir, filename)

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    return app


def main():
    """Run the API server."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    app = create_app(settings=settings)

    logger.info("Starting Cyphire API on port %d", settings.port)
    app.extensions["socketio"].run(
        app,
        host="0.0.0.0",
        port=settings.port,
        debug=settings.debug,
        allow_unsafe_werkzeug=True,
    )


if __name__ == "__main__":
    main()
