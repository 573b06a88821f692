"""Workroom endpoints: metadata, finalise handshake, chat messages and payout requests."""

from flask import Blueprint, g, jsonify, request

from ..errors import ValidationFailed
from ..workflows.workroom_manager import DEFAULT_PAGE_SIZE, MAX_MESSAGE_ATTACHMENTS
from .helpers import arg_int, uploads, validate
from .schemas import PaymentLogRequest, PostMessageRequest
from .security import admin_required, login_required, rate_limit, require_flag


bp = Blueprint("workrooms", __name__, url_prefix="/api/workrooms")


@bp.route("/<workroom_id>/meta", methods=["GET"])
@login_required
def meta(workroom_id: str):
    return jsonify(g.workrooms.meta(workroom_id, g.user.id))


@bp.route("/<workroom_id>/finalise", methods=["POST"])
@login_required
def finalise(workroom_id: str):
    """Set the caller's finalise flag. Both flags lock the chat."""
    return jsonify(g.workrooms.finalise(workroom_id, g.user.id))


# === Messages ===

@bp.route("/<workroom_id>/messages", methods=["GET"])
@login_required
@require_flag("FLAG_WORKROOM_MESSAGE")
def list_messages(workroom_id: str):
    """
    Page through messages oldest first.

    Query params:
        after: Message id to continue after
        limit: Page size (default 50, max 200)
    """
    page = g.workrooms.list_messages(
        workroom_id,
        g.user.id,
        after=request.args.get("after") or None,
        limit=arg_int("limit", DEFAULT_PAGE_SIZE),
    )
    return jsonify(page)


@bp.route("/<workroom_id>/messages", methods=["POST"])
@login_required
@require_flag("FLAG_WORKROOM_MESSAGE")
def post_message(workroom_id: str):
    body = validate(PostMessageRequest)

    task, _ = g.workrooms.access(workroom_id, g.user.id)
    if task.is_finalised:
        raise ValidationFailed("Chat is finalized")
    if len(request.files.getlist("attachments")) > MAX_MESSAGE_ATTACHMENTS:
        raise ValidationFailed(f"At most {MAX_MESSAGE_ATTACHMENTS} attachments per message")

    attachments = uploads("attachments", f"workrooms/{workroom_id}")
    item = g.workrooms.post_message(workroom_id, g.user.id, body.text, attachments)
    return jsonify({"item": item}), 201


@bp.route("/<workroom_id>/messages/<message_id>", methods=["DELETE"])
@login_required
@require_flag("FLAG_WORKROOM_MESSAGE")
def delete_message(workroom_id: str, message_id: str):
    return jsonify(g.workrooms.delete_message(workroom_id, g.user.id, message_id))


# === Payout ===

@bp.route("/<workroom_id>/payment-log", methods=["POST"])
@login_required
@require_flag("FLAG_PAYMENT_LOG")
@rate_limit(10, 3600)
def create_payment_log(workroom_id: str):
    """Selected freelancer asks to be paid out to a UPI id."""
    body = validate(PaymentLogRequest)
    log = g.payments.create_payout_log(workroom_id, g.user.id, body.upi_id)
    return jsonify({"success": True, "payment_log": log.to_dict()}), 201


# === Moderation ===

@bp.route("/<workroom_id>/admin", methods=["GET"])
@admin_required
def admin_view(workroom_id: str):
    return jsonify(g.workrooms.admin_view(workroom_id))
