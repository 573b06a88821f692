"""
Admin console endpoints.

Everything here except /login requires an admin console token, which is
issued against the credentials configured for the deployment rather than
against a user account.
"""

import hmac
import logging

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import Unauthorized
from ..models import QuestionStatus, TaskStatus, TicketStatus, TicketType
from .helpers import arg_bool, arg_enum, arg_int, page_view, task_view, task_views, uploads, validate
from .schemas import (
    AdminLoginRequest,
    AdminReplyRequest,
    AnswerRequest,
    FlagTaskRequest,
    IpRequest,
    PaymentStatusRequest,
    SetPlanRequest,
    ShowOnHelpPageRequest,
    TaskStatusRequest,
)
from .security import ADMIN_COOKIE, admin_token_required, issue_admin_token, rate_limit


logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _matches(given: str, expected: str) -> bool:
    return bool(expected) and hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def _admin_id() -> str:
    return g.admin.get("email") or "admin"


@bp.route("/login", methods=["POST"])
@rate_limit(10, 900)
def login():
    """Exchange the configured admin email, password and secret for a token."""
    body = validate(AdminLoginRequest)
    settings = current_app.config["SETTINGS"]

    if not (
        _matches(body.email.strip().lower(), settings.admin_email.strip().lower())
        and _matches(body.password, settings.admin_password)
        and _matches(body.secret, settings.admin_secret_key)
    ):
        logger.warning("Failed admin login for %s", body.email)
        raise Unauthorized("Invalid admin credentials")

    token = issue_admin_token(settings.admin_email)
    response = jsonify({"token": token})
    response.set_cookie(
        ADMIN_COOKIE,
        token,
        max_age=settings.admin_token_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
    )
    logger.info("Admin console login for %s", settings.admin_email)
    return response


# === Stats ===

@bp.route("/stats/users", methods=["GET"])
@admin_token_required
def user_stats():
    return jsonify(g.accounts.get_statistics())


@bp.route("/stats/tasks", methods=["GET"])
@admin_token_required
def task_stats():
    return jsonify(g.tasks.get_statistics())


@bp.route("/stats/payments", methods=["GET"])
@admin_token_required
def payment_stats():
    return jsonify(g.payments.get_statistics())


# === Tasks ===

@bp.route("/tasks", methods=["GET"])
@admin_token_required
def list_tasks():
    tasks = g.tasks.list_tasks(status=arg_enum("status", TaskStatus), include_flagged=True)
    return jsonify({"tasks": task_views(tasks)})


@bp.route("/tasks/<task_id>/status", methods=["PATCH"])
@admin_token_required
def update_task_status(task_id: str):
    body = validate(TaskStatusRequest)
    task = g.tasks.update_status(task_id, body.status)
    logger.info("Admin %s set task %s to %s", _admin_id(), task_id, body.status.value)
    return jsonify({"task": task_view(task)})


@bp.route("/tasks/<task_id>/flag", methods=["PATCH"])
@admin_token_required
def flag_task(task_id: str):
    body = validate(FlagTaskRequest)
    return jsonify({"task": task_view(g.tasks.flag_task(task_id, body.flagged))})


@bp.route("/tasks/<task_id>", methods=["DELETE"])
@admin_token_required
def delete_task(task_id: str):
    g.tasks.delete_task(task_id)
    return jsonify({"message": "Task deleted"})


# === Users ===

@bp.route("/users", methods=["GET"])
@admin_token_required
def list_users():
    return jsonify({"users": [u.to_profile_dict() for u in g.accounts.list_users()]})


@bp.route("/users/<user_id>", methods=["DELETE"])
@admin_token_required
def delete_user(user_id: str):
    g.accounts.delete_user(user_id)
    return jsonify({"message": "User deleted"})


@bp.route("/users/<user_id>/plan", methods=["PATCH"])
@admin_token_required
def set_user_plan(user_id: str):
    body = validate(SetPlanRequest)
    return jsonify({"user": g.accounts.set_plan(user_id, body.plan).to_profile_dict()})


# === Tickets ===

@bp.route("/tickets", methods=["GET"])
@admin_token_required
def list_tickets():
    page = g.help_desk.list_tickets(
        status=arg_enum("status", TicketStatus),
        type=arg_enum("type", TicketType),
        user_id=request.args.get("user_id") or None,
        page=arg_int("page", 1),
        limit=arg_int("limit", 50),
    )
    return jsonify(page_view(page, lambda t: t.to_dict()))


@bp.route("/tickets/<ticket_id>", methods=["GET"])
@admin_token_required
def get_ticket(ticket_id: str):
    return jsonify({"ticket": g.help_desk.require_ticket(ticket_id).to_dict()})


@bp.route("/tickets/<ticket_id>/reply", methods=["POST"])
@admin_token_required
def reply_ticket(ticket_id: str):
    body = validate(AdminReplyRequest)
    g.help_desk.require_ticket(ticket_id)
    ticket = g.help_desk.admin_reply(
        ticket_id,
        body.text,
        status=body.status,
        files=uploads("files", "help", limit=5),
    )
    return jsonify({"ticket": ticket.to_dict()})


# === Questions ===

@bp.route("/questions", methods=["GET"])
@admin_token_required
def list_questions():
    page = g.help_desk.list_questions(
        status=arg_enum("status", QuestionStatus),
        user_id=request.args.get("user_id") or None,
        keyword=request.args.get("q") or None,
        page=arg_int("page", 1),
        limit=arg_int("limit", 40),
    )
    return jsonify(page_view(page, lambda q: q.to_dict()))


@bp.route("/questions/<question_id>/answer", methods=["POST"])
@admin_token_required
def answer_question(question_id: str):
    body = validate(AnswerRequest)
    question = g.help_desk.answer(question_id, body.answer, by=_admin_id())
    return jsonify({"question": question.to_dict()})


@bp.route("/questions/<question_id>/answer", methods=["PUT"])
@admin_token_required
def edit_answer(question_id: str):
    body = validate(AnswerRequest)
    question = g.help_desk.edit_answer(question_id, body.answer, by=_admin_id())
    return jsonify({"question": question.to_dict()})


@bp.route("/questions/<question_id>/show", methods=["PATCH"])
@admin_token_required
def toggle_show(question_id: str):
    body = validate(ShowOnHelpPageRequest)
    question = g.help_desk.set_show(question_id, body.show, by=_admin_id())
    return jsonify({"question": question.to_dict()})


@bp.route("/questions/<question_id>/audit", methods=["GET"])
@admin_token_required
def question_audit(question_id: str):
    return jsonify({"audit_log": g.help_desk.audit_log(question_id)})


# === IPs ===

@bp.route("/blocked-ips", methods=["GET"])
@admin_token_required
def list_blocked_ips():
    return jsonify({"blocked_ips": [b.to_dict() for b in g.accounts.list_blocked_ips()]})


@bp.route("/blocked-ips", methods=["POST"])
@admin_token_required
def block_ip():
    body = validate(IpRequest)
    entry = g.accounts.block_ip(body.ip, reason=body.reason)
    return jsonify({"blocked_ip": entry.to_dict()}), 201


@bp.route("/blocked-ips/<ip>", methods=["DELETE"])
@admin_token_required
def unblock_ip(ip: str):
    removed = g.accounts.unblock_ip(ip)
    return jsonify({"removed": removed})


@bp.route("/users-by-ip", methods=["GET"])
@admin_token_required
def users_by_ip():
    users = g.accounts.users_by_ip(request.args.get("ip", ""))
    return jsonify({"users": [u.to_profile_dict() for u in users]})


# === Workrooms ===

@bp.route("/workrooms/<workroom_id>", methods=["GET"])
@admin_token_required
def workroom(workroom_id: str):
    return jsonify(g.workrooms.admin_view(workroom_id))


# === Payments ===

@bp.route("/payments", methods=["GET"])
@admin_token_required
@rate_limit(60, 3600, scope="admin-payments")
def list_payments():
    logs = g.payments.list_payout_logs(paid=arg_bool("paid"))
    return jsonify({"payments": [p.to_dict() for p in logs]})


@bp.route("/payments/<log_id>/status", methods=["PATCH"])
@admin_token_required
@rate_limit(60, 3600, scope="admin-payments")
def set_payment_status(log_id: str):
    body = validate(PaymentStatusRequest)
    log = g.payments.set_paid(log_id, body.paid)
    logger.info("Admin %s marked payment %s paid=%s", _admin_id(), log_id, body.paid)
    return jsonify({"success": True, "payment": log.to_dict()})
