"""Profile, portfolio, plan and user administration endpoints."""

from flask import Blueprint, g, jsonify

from ..models.user import MAX_PROJECT_MEDIA
from .helpers import uploads, validate
from .schemas import (
    BlockUserRequest,
    SaveProjectsRequest,
    SetPlanRequest,
    UpdateMeRequest,
    UpdateProjectRequest,
)
from .security import admin_required, flag_guard, login_required


bp = Blueprint("users", __name__, url_prefix="/api/users")
bp.before_request(flag_guard("FLAG_USERS"))


def _user_response(user, **extra):
    return jsonify({"user": user.to_profile_dict(), **extra})


# === Profile ===

@bp.route("/me", methods=["PUT"])
@login_required
def update_me():
    body = validate(UpdateMeRequest)
    user = g.accounts.update_profile(
        g.user.id,
        name=body.name,
        country=body.country,
        phone=body.phone,
        skills=body.skills,
        bio=body.bio,
    )
    return _user_response(user)


@bp.route("/avatar", methods=["POST"])
@login_required
def upload_avatar():
    saved = uploads("avatar", "avatars", limit=1)
    user = g.accounts.set_avatar(g.user.id, saved[0] if saved else None)
    return _user_response(user, avatar=user.avatar)


@bp.route("/me/plan", methods=["PATCH"])
@login_required
def set_my_plan():
    body = validate(SetPlanRequest)
    return _user_response(g.accounts.set_plan(g.user.id, body.plan))


# === Slugs ===

@bp.route("/slug", methods=["POST"])
@login_required
def ensure_slug():
    user = g.accounts.ensure_slug(g.user.id)
    return jsonify({"slug": user.slug})


@bp.route("/slug/<slug>/public", methods=["GET"])
def public_profile(slug: str):
    """Public profile by slug. No contact details or account internals."""
    user = g.accounts.public_profile(slug)
    return jsonify({"user": user.to_public_dict()})


# === Projects ===

@bp.route("/projects", methods=["POST"])
@login_required
def save_projects():
    body = validate(SaveProjectsRequest)
    user = g.accounts.save_projects(g.user.id, [p.model_dump() for p in body.projects])
    return jsonify({"projects": [p.to_dict() for p in user.projects]})


@bp.route("/projects/<int:index>", methods=["PUT"])
@login_required
def update_project(index: int):
    body = validate(UpdateProjectRequest)
    user = g.accounts.update_project(
        g.user.id, index, body.title, body.description, link=body.link
    )
    return jsonify({"projects": [p.to_dict() for p in user.projects]})


@bp.route("/projects/<int:index>", methods=["DELETE"])
@login_required
def delete_project(index: int):
    user = g.accounts.delete_project(g.user.id, index)
    return jsonify({"projects": [p.to_dict() for p in user.projects]})


@bp.route("/projects/<int:index>/media", methods=["POST"])
@login_required
def add_project_media(index: int):
    # Validate the index before anything is written to disk
    g.accounts.require_project(g.user.id, index)
    saved = uploads("files", "projects", limit=MAX_PROJECT_MEDIA)
    user = g.accounts.add_project_media(g.user.id, index, saved)
    return jsonify({"project": user.projects[index].to_dict()})


@bp.route("/projects/<int:index>/media/<path:public_id>", methods=["DELETE"])
@login_required
def delete_project_media(index: int, public_id: str):
    user = g.accounts.delete_project_media(g.user.id, index, public_id)
    return jsonify({"project": user.projects[index].to_dict()})


# === Administration ===

@bp.route("", methods=["GET"])
@admin_required
def list_users():
    users = g.accounts.list_users()
    return jsonify({"users": [u.to_profile_dict() for u in users]})


@bp.route("/<user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: str):
    g.accounts.delete_user(user_id)
    return jsonify({"message": "User deleted"})


@bp.route("/<user_id>/block", methods=["PATCH"])
@admin_required
def block_user(user_id: str):
    body = validate(BlockUserRequest)
    return _user_response(g.accounts.block_user(user_id, body.blocked))


@bp.route("/<user_id>/plan", methods=["PATCH"])
@admin_required
def set_user_plan(user_id: str):
    body = validate(SetPlanRequest)
    return _user_response(g.accounts.set_plan(user_id, body.plan))
