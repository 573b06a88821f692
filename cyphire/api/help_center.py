"""Help center endpoints: support tickets and the public Q&A."""

from flask import Blueprint, g, jsonify

from ..errors import CyphireError, ValidationFailed
from ..models import TicketStatus, TicketType
from .helpers import arg_enum, arg_int, page_view, uploads, validate
from .schemas import AskQuestionRequest, CommentRequest, CreateTicketRequest
from .security import admin_required, flag_guard, login_required, require_flag


bp = Blueprint("help", __name__, url_prefix="/api/help")
bp.before_request(flag_guard("FLAG_HELP"))

MAX_TICKET_FILES = 5


# === Tickets ===

@bp.route("/tickets", methods=["POST"])
@login_required
def create_ticket():
    body = validate(CreateTicketRequest)
    ticket = g.help_desk.create_ticket(
        g.user,
        body.type,
        body.subject,
        body.description,
        attachments=uploads("attachments", "help", limit=MAX_TICKET_FILES),
    )
    return jsonify({"ticket": ticket.to_dict()}), 201


@bp.route("/tickets/mine", methods=["GET"])
@login_required
def my_tickets():
    tickets = g.help_desk.my_tickets(g.user.id)
    return jsonify({"tickets": [t.to_dict() for t in tickets]})


@bp.route("/tickets", methods=["GET"])
@admin_required
def list_tickets():
    page = g.help_desk.list_tickets(
        status=arg_enum("status", TicketStatus),
        type=arg_enum("type", TicketType),
        page=arg_int("page", 1),
        limit=arg_int("limit", 50),
    )
    return jsonify(page_view(page, lambda t: t.to_dict()))


@bp.route("/tickets/<ticket_id>", methods=["GET"])
@login_required
def get_ticket(ticket_id: str):
    return jsonify({"ticket": g.help_desk.get_ticket(ticket_id, g.user).to_dict()})


@bp.route("/tickets/<ticket_id>/comments", methods=["POST"])
@login_required
def post_comment(ticket_id: str):
    body = validate(CommentRequest)
    if g.help_desk.get_ticket(ticket_id, g.user).is_closed:
        raise ValidationFailed("Ticket is closed")

    files = uploads("files", "help", limit=MAX_TICKET_FILES)
    try:
        ticket = g.help_desk.post_comment(ticket_id, g.user, body.text, files=files)
    except CyphireError:
        g.media.delete_all(files)
        raise
    return jsonify({"ticket": ticket.to_dict()}), 201


@bp.route("/tickets/<ticket_id>/close", methods=["PATCH"])
@login_required
def close_ticket(ticket_id: str):
    return jsonify({"ticket": g.help_desk.close_ticket(ticket_id, g.user).to_dict()})


@bp.route("/tickets/<ticket_id>/reopen", methods=["PATCH"])
@login_required
def reopen_ticket(ticket_id: str):
    return jsonify({"ticket": g.help_desk.reopen_ticket(ticket_id, g.user).to_dict()})


# === Questions ===

@bp.route("/questions", methods=["POST"])
@login_required
@require_flag("FLAG_HELP_QUESTION")
def ask_question():
    body = validate(AskQuestionRequest)
    question = g.help_desk.ask(g.user.id, body.question)
    return jsonify({"question": question.to_dict()}), 201


@bp.route("/questions", methods=["GET"])
@require_flag("FLAG_HELP_QUESTION")
def public_questions():
    """Answered questions published on the help page."""
    questions = g.help_desk.public_questions()
    return jsonify({"questions": [q.to_public_dict() for q in questions]})
