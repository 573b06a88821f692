"""Task posting, browsing, applying and selection endpoints."""

from flask import Blueprint, g, jsonify, request

from ..errors import NotFound
from ..models import TaskStatus
from .helpers import arg_enum, task_view, task_views, uploads, validate
from .schemas import CreateTaskRequest, SelectApplicantRequest
from .security import login_required


bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")

MAX_TASK_ATTACHMENTS = 10


@bp.route("", methods=["POST"])
@login_required
def create_task():
    """
    Post a task.

    Accepts JSON, or multipart form data with ``attachments`` files and
    ``metadata`` as a JSON string.
    """
    body = validate(CreateTaskRequest)
    attachments = uploads("attachments", "tasks", limit=MAX_TASK_ATTACHMENTS)
    task = g.tasks.create_task(
        title=body.title,
        description=body.description,
        price=body.price,
        category=body.category,
        created_by=g.user.id,
        number_of_applicants=body.number_of_applicants,
        deadline=body.deadline,
        attachments=attachments,
        metadata=body.metadata,
    )
    return jsonify({"task": task_view(task)}), 201


@bp.route("", methods=["GET"])
def list_tasks():
    """
    List open marketplace tasks, newest first.

    Query params:
        status: Filter by status
        category: Filter by category (case-insensitive)
    """
    tasks = g.tasks.list_tasks(
        status=arg_enum("status", TaskStatus),
        category=request.args.get("category"),
    )
    return jsonify({"tasks": task_views(tasks)})


@bp.route("/mine", methods=["GET"])
@login_required
def my_tasks():
    tasks = g.tasks.list_tasks(created_by=g.user.id, include_flagged=True)
    return jsonify({"tasks": task_views(tasks)})


@bp.route("/applied", methods=["GET"])
@login_required
def applied_tasks():
    return jsonify({"tasks": task_views(g.tasks.list_applied(g.user.id))})


@bp.route("/<task_id>", methods=["GET"])
def get_task(task_id: str):
    task = g.tasks.get_task(task_id)
    if task is None:
        raise NotFound("Task not found")
    return jsonify({"task": task_view(task)})


@bp.route("/<task_id>/apply", methods=["POST"])
@login_required
def apply(task_id: str):
    task, created = g.tasks.apply(task_id, g.user.id)
    message = "Applied successfully" if created else "Already applied"
    return jsonify({"message": message, "task": task_view(task)})


@bp.route("/<task_id>/select", methods=["POST"])
@login_required
def select_applicant(task_id: str):
    """Award the task without a gateway payment (escrow handled elsewhere)."""
    body = validate(SelectApplicantRequest)
    task = g.tasks.select_applicant(task_id, g.user.id, body.applicant_id)
    return jsonify({
        "message": "Applicant selected",
        "task": task_view(task),
        "workroom_id": task.workroom_id,
    })
