"""Help center models: support tickets and public questions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import Attachment, from_iso, new_id, to_iso


class TicketType(Enum):
    PAYMENT = "payment"
    TASK = "task"
    WORKROOM = "workroom"
    ACCOUNT = "account"
    REPORT = "report"
    OTHER = "other"


class TicketStatus(Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class AuthorRole(Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass
class TicketComment:
    """A reply in a ticket thread."""

    author_id: Optional[str] = None
    author_role: AuthorRole = AuthorRole.USER
    author_name: str = ""
    author_avatar: str = ""
    text: str = ""
    files: list[Attachment] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "author": {
                "id": self.author_id,
                "role": self.author_role.value,
                "name": self.author_name,
                "avatar": self.author_avatar,
            },
            "text": self.text,
            "files": [f.to_dict() for f in self.files],
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TicketComment":
        author = data.get("author", {})
        return cls(
            author_id=author.get("id"),
            author_role=AuthorRole(author.get("role", "user")),
            author_name=author.get("name", ""),
            author_avatar=author.get("avatar", ""),
            text=data.get("text", ""),
            files=[Attachment.from_dict(f) for f in data.get("files", [])],
            created_at=from_iso(data.get("created_at")) or datetime.utcnow(),
        )


@dataclass
class HelpTicket:
    """A support ticket with a threaded conversation."""

    id: str = field(default_factory=lambda: new_id("TKT"))
    user_id: str = ""
    type: TicketType = TicketType.OTHER
    subject: str = ""
    description: str = ""
    comments: list[TicketComment] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    status: TicketStatus = TicketStatus.OPEN
    closed_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED

    def add_comment(self, comment: TicketComment) -> None:
        self.comments.append(comment)
        self.updated_at = datetime.utcnow()

    def close(self, by_user_id: Optional[str], by_role: AuthorRole, by_name: str) -> None:
        who = "Admin" if by_role == AuthorRole.ADMIN else "User"
        self.status = TicketStatus.CLOSED
        self.closed_by = by_user_id
        self.closed_at = datetime.utcnow()
        self.add_comment(TicketComment(
            author_id=by_user_id,
            author_role=by_role,
            author_name=by_name,
            text=f"{who} closed this ticket.",
        ))

    def reopen(self, by_user_id: Optional[str], by_role: AuthorRole, by_name: str) -> None:
        who = "Admin" if by_role == AuthorRole.ADMIN else "User"
        self.status = TicketStatus.OPEN
        self.closed_by = None
        self.closed_at = None
        self.add_comment(TicketComment(
            author_id=by_user_id,
            author_role=by_role,
            author_name=by_name,
            text=f"{who} reopened this ticket.",
        ))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value,
            "subject": self.subject,
            "description": self.description,
            "comments": [c.to_dict() for c in self.comments],
            "attachments": [a.to_dict() for a in self.attachments],
            "status": self.status.value,
            "closed_by": self.closed_by,
            "closed_at": to_iso(self.closed_at),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HelpTicket":
        ticket = cls(
            id=data.get("id") or new_id("TKT"),
            user_id=data.get("user_id", ""),
            type=TicketType(data.get("type", "other")),
            subject=data.get("subject", ""),
            description=data.get("description", ""),
            comments=[TicketComment.from_dict(c) for c in data.get("comments", [])],
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            status=TicketStatus(data.get("status", "open")),
            closed_by=data.get("closed_by"),
            closed_at=from_iso(data.get("closed_at")),
        )
        if data.get("created_at"):
            ticket.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            ticket.updated_at = datetime.fromisoformat(data["updated_at"])
        return ticket


class QuestionStatus(Enum):
    OPEN = "open"
    ANSWERED = "answered"


class AuditAction(Enum):
    ASKED = "asked"
    ANSWERED = "answered"
    EDITED = "edited"
    SHOW_TOGGLED = "showToggled"


@dataclass
class AuditEntry:
    action: AuditAction
    user_id: Optional[str] = None
    prev_answer: Optional[str] = None
    new_answer: Optional[str] = None
    prev_show: Optional[bool] = None
    new_show: Optional[bool] = None
    at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "user_id": self.user_id,
            "prev_answer": self.prev_answer,
            "new_answer": self.new_answer,
            "prev_show": self.prev_show,
            "new_show": self.new_show,
            "at": to_iso(self.at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        return cls(
            action=AuditAction(data["action"]),
            user_id=data.get("user_id"),
            prev_answer=data.get("prev_answer"),
            new_answer=data.get("new_answer"),
            prev_show=data.get("prev_show"),
            new_show=data.get("new_show"),
            at=from_iso(data.get("at")) or datetime.utcnow(),
        )


@dataclass
class HelpQuestion:
    """A user question that admins may answer and publish on the help page."""

    id: str = field(default_factory=lambda: new_id("Q"))
    user_id: Optional[str] = None
    question: str = ""
    answer: str = ""
    answered_by: Optional[str] = None
    answered_at: Optional[datetime] = None
    status: QuestionStatus = QuestionStatus.OPEN
    show_on_help_page: bool = False
    audit_log: list[AuditEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def answer_with(self, text: str, by: Optional[str]) -> None:
        previous = self.answer
        self.answer = text
        self.answered_by = by
        self.answered_at = datetime.utcnow()
        self.status = QuestionStatus.ANSWERED
        self.updated_at = datetime.utcnow()
        self.audit_log.append(AuditEntry(
            action=AuditAction.ANSWERED, user_id=by, prev_answer=previous, new_answer=text,
        ))

    def edit_answer(self, text: str, by: Optional[str]) -> None:
        previous = self.answer
        self.answer = text
        self.updated_at = datetime.utcnow()
        self.audit_log.append(AuditEntry(
            action=AuditAction.EDITED, user_id=by, prev_answer=previous, new_answer=text,
        ))

    def set_show(self, show: bool, by: Optional[str]) -> None:
        previous = self.show_on_help_page
        self.show_on_help_page = show
        self.updated_at = datetime.utcnow()
        self.audit_log.append(AuditEntry(
            action=AuditAction.SHOW_TOGGLED, user_id=by, prev_show=previous, new_show=show,
        ))

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "answered_at": to_iso(self.answered_at),
            "created_at": to_iso(self.created_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "question": self.question,
            "answer": self.answer,
            "answered_by": self.answered_by,
            "answered_at": to_iso(self.answered_at),
            "status": self.status.value,
            "show_on_help_page": self.show_on_help_page,
            "audit_log": [a.to_dict() for a in self.audit_log],
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HelpQuestion":
        question = cls(
            id=data.get("id") or new_id("Q"),
            user_id=data.get("user_id"),
            question=data.get("question", ""),
            answer=data.get("answer", ""),
            answered_by=data.get("answered_by"),
            answered_at=from_iso(data.get("answered_at")),
            status=QuestionStatus(data.get("status", "open")),
            show_on_help_page=data.get("show_on_help_page", False),
            audit_log=[AuditEntry.from_dict(a) for a in data.get("audit_log", [])],
        )
        if data.get("created_at"):
            question.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            question.updated_at = datetime.fromisoformat(data["updated_at"])
        return question
