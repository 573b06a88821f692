"""Task model for posted work."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .common import Attachment, from_iso, new_id, to_iso


class TaskStatus(Enum):
    """Task lifecycle status."""

    PENDING = "pending"              # Posted, accepting applications
    IN_PROGRESS = "in-progress"      # Applicant selected, workroom open
    COMPLETED = "completed"          # Both sides finalised
    DISPUTED = "disputed"            # Raised with admin
    CANCELLED = "cancelled"          # Withdrawn


class ParticipantRole(Enum):
    """Which side of a workroom a user sits on."""

    CLIENT = "client"
    WORKER = "worker"


@dataclass
class Task:
    """A piece of work posted by a client."""

    # Identity
    id: str = field(default_factory=lambda: new_id("TASK"))
    title: str = ""
    description: str = ""

    # Terms
    price: int = 0
    category: list[str] = field(default_factory=list)
    deadline: Optional[datetime] = None
    number_of_applicants: int = 0  # capacity, 0 = unlimited

    # Status
    status: TaskStatus = TaskStatus.PENDING
    flagged: bool = False

    # People
    created_by: str = ""
    applicants: list[str] = field(default_factory=list)
    selected_applicant: Optional[str] = None

    # Workroom
    workroom_id: Optional[str] = None
    client_finalised: bool = False
    worker_finalised: bool = False
    finalised_at: Optional[datetime] = None

    # Payout
    payment_requested: bool = False
    upi_id: str = ""
    payment: dict = field(default_factory=dict)
    # {"order_id": str, "payment_id": str, "amount": int}

    attachments: list[Attachment] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_full(self) -> bool:
        """Whether the applicant capacity has been reached."""
        return self.number_of_applicants > 0 and len(self.applicants) >= self.number_of_applicants

    @property
    def is_finalised(self) -> bool:
        return self.client_finalised and self.worker_finalised

    def has_applied(self, user_id: str) -> bool:
        return user_id in self.applicants

    def add_applicant(self, user_id: str) -> bool:
        """Add an applicant. Returns False if already applied or full."""
        if self.has_applied(user_id) or self.is_full:
            return False
        self.applicants.append(user_id)
        self.updated_at = datetime.utcnow()
        return True

    def select(self, user_id: str, workroom_id: str) -> bool:
        """Select an applicant and open the workroom."""
        if self.selected_applicant or not self.has_applied(user_id):
            return False
        self.selected_applicant = user_id
        self.workroom_id = workroom_id
        self.status = TaskStatus.IN_PROGRESS
        self.updated_at = datetime.utcnow()
        return True

    def role_of(self, user_id: str) -> Optional[ParticipantRole]:
        """Role of a user in this task's workroom, or None for outsiders."""
        if user_id == self.created_by:
            return ParticipantRole.CLIENT
        if self.selected_applicant and user_id == self.selected_applicant:
            return ParticipantRole.WORKER
        return None

    def finalise(self, role: ParticipantRole) -> bool:
        """
        Set one side's finalise flag.

        Returns True only on the call that completes the handshake.
        """
        if role == ParticipantRole.CLIENT:
            self.client_finalised = True
        else:
            self.worker_finalised = True
        self.updated_at = datetime.utcnow()

        if self.is_finalised and self.finalised_at is None:
            self.finalised_at = datetime.utcnow()
            self.status = TaskStatus.COMPLETED
            return True
        return False

    def to_dict(self) -> dict:
        """Serialize task to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "deadline": to_iso(self.deadline),
            "number_of_applicants": self.number_of_applicants,
            "status": self.status.value,
            "flagged": self.flagged,
            "created_by": self.created_by,
            "applicants": self.applicants,
            "selected_applicant": self.selected_applicant,
            "workroom_id": self.workroom_id,
            "client_finalised": self.client_finalised,
            "worker_finalised": self.worker_finalised,
            "finalised_at": to_iso(self.finalised_at),
            "payment_requested": self.payment_requested,
            "upi_id": self.upi_id,
            "payment": self.payment,
            "attachments": [a.to_dict() for a in self.attachments],
            "metadata": self.metadata,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Deserialize task from dictionary."""
        task = cls(
            id=data.get("id") or new_id("TASK"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            price=data.get("price", 0),
            category=data.get("category", []),
            deadline=from_iso(data.get("deadline")),
            number_of_applicants=data.get("number_of_applicants", 0),
            status=TaskStatus(data.get("status", "pending")),
            flagged=data.get("flagged", False),
            created_by=data.get("created_by", ""),
            applicants=data.get("applicants", []),
            selected_applicant=data.get("selected_applicant"),
            workroom_id=data.get("workroom_id"),
            client_finalised=data.get("client_finalised", False),
            worker_finalised=data.get("worker_finalised", False),
            finalised_at=from_iso(data.get("finalised_at")),
            payment_requested=data.get("payment_requested", False),
            upi_id=data.get("upi_id", ""),
            payment=data.get("payment", {}),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            metadata=data.get("metadata", {}),
        )

        if data.get("created_at"):
            task.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            task.updated_at = datetime.fromisoformat(data["updated_at"])

        return task
