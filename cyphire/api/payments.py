"""Razorpay checkout endpoints: orders, verified task posting and escrowed selection."""

from flask import Blueprint, g, jsonify

from .helpers import task_view, uploads, validate
from .schemas import CreateOrderRequest, VerifyAndSelectRequest, VerifyPaymentRequest
from .security import flag_guard, login_required, rate_limit
from .tasks import MAX_TASK_ATTACHMENTS


bp = Blueprint("payments", __name__, url_prefix="/api/payment")
bp.before_request(flag_guard("FLAG_PAYMENT"))


@bp.route("/public-key", methods=["GET"])
def public_key():
    """Checkout key id for the browser widget."""
    return jsonify({"key_id": g.payments.public_key()})


@bp.route("/create-order", methods=["POST"])
@login_required
@rate_limit(10, 60)
def create_order():
    body = validate(CreateOrderRequest)
    order = g.payments.create_order(body.amount, g.user.id)
    return jsonify({"success": True, "order": order})


@bp.route("/verify-payment", methods=["POST"])
@login_required
@rate_limit(5, 60)
def verify_payment():
    """
    Verify a checkout callback and post the paid task.

    Request body:
        razorpay_order_id, razorpay_payment_id, razorpay_signature plus the
        task fields accepted by POST /api/tasks
    """
    body = validate(VerifyPaymentRequest)
    # Reject a forged callback before any upload touches disk
    g.payments.verify(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature)
    task = g.payments.verify_and_create_task(
        order_id=body.razorpay_order_id,
        payment_id=body.razorpay_payment_id,
        signature=body.razorpay_signature,
        user_id=g.user.id,
        title=body.title,
        description=body.description,
        price=body.price,
        category=body.category,
        number_of_applicants=body.number_of_applicants,
        deadline=body.deadline,
        attachments=uploads("attachments", "tasks", limit=MAX_TASK_ATTACHMENTS),
        metadata=body.metadata,
    )
    return jsonify({"success": True, "task": task_view(task)}), 201


@bp.route("/verify-and-select", methods=["POST"])
@login_required
@rate_limit(5, 60)
def verify_and_select():
    body = validate(VerifyAndSelectRequest)
    task = g.payments.verify_and_select(
        order_id=body.razorpay_order_id,
        payment_id=body.razorpay_payment_id,
        signature=body.razorpay_signature,
        user_id=g.user.id,
        task_id=body.task_id,
        applicant_id=body.applicant_id,
    )
    return jsonify({
        "success": True,
        "task": task_view(task),
        "workroom_id": task.workroom_id,
    })
