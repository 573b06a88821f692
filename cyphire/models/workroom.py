"""Workroom message history."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .common import Attachment, from_iso, new_id, to_iso


MAX_MESSAGE_LENGTH = 2000


@dataclass
class Message:
    """A single chat message. Deleted messages are kept but hidden."""

    id: str = field(default_factory=lambda: new_id("MSG"))
    sender: str = ""
    text: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender": self.sender,
            "text": self.text,
            "attachments": [a.to_dict() for a in self.attachments],
            "created_at": to_iso(self.created_at),
            "deleted": self.deleted,
            "deleted_at": to_iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data.get("id") or new_id("MSG"),
            sender=data.get("sender", ""),
            text=data.get("text", ""),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            created_at=from_iso(data.get("created_at")) or datetime.utcnow(),
            deleted=data.get("deleted", False),
            deleted_at=from_iso(data.get("deleted_at")),
        )


@dataclass
class WorkroomThread:
    """All messages of one workroom, keyed by the workroom id."""

    workroom_id: str = ""
    messages: list[Message] = field(default_factory=list)
    expire_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def id(self) -> str:
        return self.workroom_id

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return self.expire_at is not None and self.expire_at <= now

    def visible_messages(self) -> list[Message]:
        return [m for m in self.messages if not m.deleted]

    def page(self, after: Optional[str] = None, limit: int = 50) -> tuple[list[Message], Optional[str]]:
        """
        Return visible messages oldest first, starting after a cursor.

        Args:
            after: Id of the last message the caller already has
            limit: Maximum messages to return

        Returns:
            (messages, next_cursor). ``next_cursor`` is None when the caller
            has reached the end.
        """
        messages = self.visible_messages()
        if after:
            ids = [m.id for m in self.messages]
            if after in ids:
                position = ids.index(after)
                messages = [m for m in self.messages[position + 1:] if not m.deleted]

        page = messages[:limit]
        has_more = len(messages) > limit
        next_cursor = page[-1].id if page and has_more else None
        return page, next_cursor

    def find(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def soft_delete(self, message_id: str) -> Optional[Message]:
        message = self.find(message_id)
        if message is None or message.deleted:
            return None
        message.deleted = True
        message.deleted_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()
        return message

    def to_dict(self) -> dict:
        return {
            "workroom_id": self.workroom_id,
            "messages": [m.to_dict() for m in self.messages],
            "expire_at": to_iso(self.expire_at),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkroomThread":
        thread = cls(
            workroom_id=data.get("workroom_id", ""),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            expire_at=from_iso(data.get("expire_at")),
        )
        if data.get("created_at"):
            thread.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            thread.updated_at = datetime.fromisoformat(data["updated_at"])
        return thread
