"""Authentication and notification endpoints."""

import logging

from flask import Blueprint, current_app, g, jsonify

from .helpers import validate
from .schemas import SigninRequest, SignupRequest
from .security import (
    clear_auth_cookie,
    client_ip,
    flag_guard,
    issue_user_token,
    login_required,
    set_auth_cookie,
)


logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/api/auth")
bp.before_request(flag_guard("FLAG_AUTH"))


def _session_response(user, remember_me: bool, status: int = 200):
    settings = current_app.config["SETTINGS"]
    days = settings.remember_me_days if remember_me else settings.token_days
    token = issue_user_token(user.id, days)
    response = jsonify({"user": user.to_profile_dict(), "token": token})
    response.status_code = status
    set_auth_cookie(response, token, days)
    return response


@bp.route("/signup", methods=["POST"])
def signup():
    """
    Register with email and password.

    Request body:
        name, email, password, remember_me (optional)
    """
    body = validate(SignupRequest)
    user = g.accounts.signup(body.name, body.email, body.password, ip=client_ip())
    return _session_response(user, body.remember_me, status=201)


@bp.route("/signin", methods=["POST"])
def signin():
    body = validate(SigninRequest)
    user = g.accounts.signin(body.email, body.password, ip=client_ip())
    logger.info("User %s signed in from %s", user.id, client_ip() or "unknown ip")
    return _session_response(user, body.remember_me)


@bp.route("/signout", methods=["POST"])
def signout():
    response = jsonify({"message": "Signed out"})
    clear_auth_cookie(response)
    return response


@bp.route("/me", methods=["GET"])
@login_required
def me():
    """Current user. An expired paid plan is downgraded on read."""
    return jsonify({"user": g.user.to_profile_dict()})


# === Notifications ===

@bp.route("/notifications", methods=["GET"])
@login_required
def list_notifications():
    return jsonify({"notifications": g.accounts.list_notifications(g.user.id)})


@bp.route("/notifications/<int(signed=True):index>/read", methods=["POST"])
@login_required
def mark_notification_read(index: int):
    notifications = g.accounts.mark_notification_read(g.user.id, index)
    return jsonify({"notifications": notifications})


@bp.route("/notifications/<int(signed=True):index>", methods=["DELETE"])
@login_required
def delete_notification(index: int):
    notifications = g.accounts.delete_notification(g.user.id, index)
    return jsonify({"notifications": notifications})
