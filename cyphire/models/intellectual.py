"""Applications to the intellectuals programme (professors, influencers, experts, coaches)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import hashlib

from .common import Attachment, from_iso, new_id, to_iso


class IntellectualCategory(Enum):
    PROFESSOR = "professor"
    INFLUENCER = "influencer"
    INDUSTRY_EXPERT = "industry_expert"
    COACH = "coach"


class ApplicationStatus(Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


def application_fingerprint(user_id: str, category: str, full_name: str, when: Optional[datetime] = None) -> str:
    """Per-day fingerprint used to spot duplicate submissions."""
    when = when or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    day_bucket = int(when.timestamp() // 86400)
    raw = f"{user_id}:{category}:{full_name.lower()}:{day_bucket}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass
class IntellectualApplication:
    """A user's application to be listed as an intellectual."""

    id: str = field(default_factory=lambda: new_id("APP"))
    user_id: str = ""
    category: IntellectualCategory = IntellectualCategory.PROFESSOR
    status: ApplicationStatus = ApplicationStatus.SUBMITTED

    profile: dict[str, Any] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)  # category-specific block
    attachments: list[Attachment] = field(default_factory=list)

    review_notes: str = ""
    audit: list[dict] = field(default_factory=list)
    # Each entry: {"action": str, "by": str, "note": str, "at": iso}
    fingerprint: str = ""

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def log(self, action: str, by: Optional[str], note: str = "") -> None:
        self.audit.append({
            "action": action,
            "by": by,
            "note": note,
            "at": datetime.utcnow().isoformat(),
        })
        self.updated_at = datetime.utcnow()

    def add_review_note(self, note: str) -> None:
        self.review_notes = "\n".join(n for n in (self.review_notes, note) if n)

    def to_public_dict(self) -> dict:
        """Listing shown on the public intellectuals page."""
        return {
            "id": self.id,
            "category": self.category.value,
            "profile": self.profile,
            "details": self.details,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category": self.category.value,
            "status": self.status.value,
            "profile": self.profile,
            "details": self.details,
            "attachments": [a.to_dict() for a in self.attachments],
            "review_notes": self.review_notes,
            "audit": self.audit,
            "fingerprint": self.fingerprint,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IntellectualApplication":
        application = cls(
            id=data.get("id") or new_id("APP"),
            user_id=data.get("user_id", ""),
            category=IntellectualCategory(data.get("category", "professor")),
            status=ApplicationStatus(data.get("status", "submitted")),
            profile=data.get("profile", {}),
            details=data.get("details", {}),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            review_notes=data.get("review_notes", ""),
            audit=data.get("audit", []),
            fingerprint=data.get("fingerprint", ""),
        )
        if data.get("created_at"):
            application.created_at = from_iso(data["created_at"])
        if data.get("updated_at"):
            application.updated_at = from_iso(data["updated_at"])
        return application
