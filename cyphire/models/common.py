"""Helpers shared by the document models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import uuid


def new_id(prefix: str) -> str:
    """Generate a short prefixed identifier, e.g. ``TASK-1A2B3C4D``."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def media_kind(content_type: str) -> str:
    """Classify an upload as image, video or file by its MIME type."""
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("video/"):
        return "video"
    return "file"


@dataclass
class Attachment:
    """A stored upload referenced from a task, message, ticket or project."""

    url: str = ""
    public_id: str = ""
    type: str = "file"
    original_name: str = ""
    size: int = 0
    content_type: str = "application/octet-stream"

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "public_id": self.public_id,
            "type": self.type,
            "original_name": self.original_name,
            "size": self.size,
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            url=data.get("url", ""),
            public_id=data.get("public_id", ""),
            type=data.get("type", "file"),
            original_name=data.get("original_name", ""),
            size=data.get("size", 0),
            content_type=data.get("content_type", "application/octet-stream"),
        )
