"""Request parsing and response shaping shared by the blueprints."""

import json
from enum import Enum
from typing import Iterable, Optional, Type, TypeVar

from flask import g, request
from pydantic import BaseModel

from ..errors import ValidationFailed
from ..models import Attachment, Task


M = TypeVar("M", bound=BaseModel)
E = TypeVar("E", bound=Enum)

# Multipart fields that carry JSON documents
JSON_FORM_FIELDS = {
    "metadata",
    "profile",
    "professor",
    "influencer",
    "industry_expert",
    "coach",
    "projects",
}

# Multipart fields that may repeat
LIST_FORM_FIELDS = {"category", "skills"}


def payload() -> dict:
    """Request body as a dict, from JSON or from multipart/urlencoded form data."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationFailed("Invalid JSON body")
        if not isinstance(data, dict):
            raise ValidationFailed("Request body must be an object")
        return data

    data = {}
    for key in request.form:
        values = request.form.getlist(key)
        if key in JSON_FORM_FIELDS:
            try:
                data[key] = json.loads(values[0]) if values[0] else None
            except json.JSONDecodeError:
                raise ValidationFailed(f"Invalid JSON in {key}")
        elif key in LIST_FORM_FIELDS and len(values) > 1:
            data[key] = values
        else:
            data[key] = values[0]
    return data


def validate(model: Type[M], data: Optional[dict] = None) -> M:
    """Validate a body with a pydantic model. Errors surface as 400."""
    return model.model_validate(payload() if data is None else data)


def uploads(field: str, folder: str, limit: Optional[int] = None) -> list[Attachment]:
    """Store every file sent under ``field``."""
    files = request.files.getlist(field)
    if not files:
        return []
    return g.media.save_all(files, folder, limit=limit)


def arg_int(name: str, default: int) -> int:
    return request.args.get(name, default, type=int)


def arg_enum(name: str, enum_cls: Type[E]) -> Optional[E]:
    """Parse an optional enum query argument; unknown values are a 400."""
    value = request.args.get(name)
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {name}: {value}")


def arg_bool(name: str) -> Optional[bool]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in ("1", "true", "yes")


def task_views(tasks: Iterable[Task]) -> list[dict]:
    """Render tasks with applicants and creator expanded to user summaries."""
    users = {u.id: u for u in g.tasks.store.users.all()}
    views = []
    for task in tasks:
        data = task.to_dict()
        data["applicants"] = [users[a].summary() for a in task.applicants if a in users]
        creator = users.get(task.created_by)
        data["creator"] = creator.summary() if creator else None
        views.append(data)
    return views


def task_view(task: Task) -> dict:
    return task_views([task])[0]


def page_view(page: dict, render) -> dict:
    """Render the items of a paginate() result."""
    return {**page, "items": [render(item) for item in page["items"]]}
