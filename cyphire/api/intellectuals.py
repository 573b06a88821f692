"""Intellectuals programme endpoints (disabled unless FLAG_INTELLECTUALS is on)."""

from flask import Blueprint, g, jsonify, request

from ..models import ApplicationStatus, IntellectualCategory
from .helpers import arg_enum, arg_int, page_view, uploads, validate
from .schemas import ApplicationStatusRequest, IntellectualApplicationRequest, ReviewNoteRequest
from .security import admin_token_required, flag_guard, login_required, rate_limit


bp = Blueprint("intellectuals", __name__, url_prefix="/api/intellectuals")
bp.before_request(flag_guard("FLAG_INTELLECTUALS"))

MAX_APPLICATION_FILES = 10


@bp.route("", methods=["GET"])
def list_approved():
    apps = g.intellectuals.approved(category=arg_enum("category", IntellectualCategory))
    return jsonify({"intellectuals": [a.to_public_dict() for a in apps]})


@bp.route("/applications", methods=["POST"])
@login_required
@rate_limit(10, 900)
def submit_application():
    """
    Submit an application.

    Request body:
        category: professor | influencer | industry_expert | coach
        profile: full_name, headline, bio, languages, location, socials
        <category>: the block matching ``category``
    """
    body = validate(IntellectualApplicationRequest)
    duplicate = g.intellectuals.find_duplicate(g.user.id, body.category, body.profile.full_name)
    if duplicate:
        return jsonify({"application": duplicate.to_dict()}), 201

    attachments = uploads("attachments", "intellectuals", limit=MAX_APPLICATION_FILES)
    application = g.intellectuals.submit(
        g.user.id,
        body.category,
        body.profile.model_dump(),
        body.details(),
        attachments=attachments,
    )
    if attachments and application.attachments != attachments:
        # Lost a race with an identical submission
        g.media.delete_all(attachments)
    return jsonify({"application": application.to_dict()}), 201


@bp.route("/applications/mine", methods=["GET"])
@login_required
def my_applications():
    apps = g.intellectuals.mine(g.user.id)
    return jsonify({"applications": [a.to_dict() for a in apps]})


@bp.route("/applications/<application_id>", methods=["GET"])
@login_required
def get_application(application_id: str):
    application = g.intellectuals.get(application_id, g.user)
    return jsonify({"application": application.to_dict()})


# === Review ===

@bp.route("/admin/applications", methods=["GET"])
@admin_token_required
def search_applications():
    page = g.intellectuals.search(
        status=arg_enum("status", ApplicationStatus),
        category=arg_enum("category", IntellectualCategory),
        q=request.args.get("q") or None,
        page=arg_int("page", 1),
        limit=arg_int("limit", 20),
    )
    return jsonify(page_view(page, lambda a: a.to_dict()))


@bp.route("/admin/applications/<application_id>/status", methods=["PATCH"])
@admin_token_required
def update_status(application_id: str):
    body = validate(ApplicationStatusRequest)
    application = g.intellectuals.update_status(
        application_id, body.status, by=g.admin.get("email"), note=body.note
    )
    return jsonify({"application": application.to_dict()})


@bp.route("/admin/applications/<application_id>/notes", methods=["POST"])
@admin_token_required
def add_review_note(application_id: str):
    body = validate(ReviewNoteRequest)
    application = g.intellectuals.add_review_note(
        application_id, body.note, by=g.admin.get("email")
    )
    return jsonify({"application": application.to_dict()})
