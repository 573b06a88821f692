"""Workroom collaboration: access checks, chat messages and the finalise handshake."""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from ..config import Settings
from ..errors import Forbidden, NotFound, ValidationFailed
from ..media import MediaStore
from ..models import MAX_MESSAGE_LENGTH, Attachment, Message, ParticipantRole, Task, WorkroomThread
from ..storage import DocumentStore


logger = logging.getLogger(__name__)

# emit(event, payload, room)
Emitter = Callable[[str, dict, str], None]

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
MAX_MESSAGE_ATTACHMENTS = 10


def room_name(workroom_id: str) -> str:
    """Socket.IO room that members of a workroom join."""
    return f"workroom:{workroom_id}"


class WorkroomManager:
    """Manages workroom chat between a task's client and selected freelancer."""

    def __init__(
        self,
        data_dir: Path,
        settings: Optional[Settings] = None,
        media: Optional[MediaStore] = None,
        emit: Optional[Emitter] = None,
    ):
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)
        self.media = media
        self.emit = emit

    def _emit(self, event: str, payload: dict, workroom_id: str) -> None:
        if self.emit is None:
            return
        self.emit(event, payload, room_name(workroom_id))

    # === Access ===

    def require_task(self, workroom_id: str) -> Task:
        task = self.store.tasks.first(lambda t: t.workroom_id == workroom_id)
        if task is None:
            raise NotFound("Workroom not found")
        return task

    def access(self, workroom_id: str, user_id: str) -> tuple[Task, ParticipantRole]:
        """Resolve a workroom and the caller's role in it."""
        task = self.require_task(workroom_id)
        role = task.role_of(user_id)
        if role is None:
            raise Forbidden("You are not a participant of this workroom")
        return task, role

    def can_join(self, workroom_id: str, user_id: str) -> bool:
        task = self.store.tasks.first(lambda t: t.workroom_id == workroom_id)
        return task is not None and task.role_of(user_id) is not None

    def _thread(self, workroom_id: str) -> WorkroomThread:
        return self.store.workrooms.get(workroom_id) or WorkroomThread(workroom_id=workroom_id)

    # === Meta & handshake ===

    def meta(self, workroom_id: str, user_id: str) -> dict:
        task, role = self.access(workroom_id, user_id)
        return {
            "workroom_id": workroom_id,
            "task_id": task.id,
            "title": task.title,
            "price": task.price,
            "status": task.status.value,
            "created_by": task.created_by,
            "selected_applicant": task.selected_applicant,
            "role": role.value,
            "client_finalised": task.client_finalised,
            "worker_finalised": task.worker_finalised,
            "finalised_at": task.finalised_at.isoformat() if task.finalised_at else None,
            "payment_requested": task.payment_requested,
            "upi_id": task.upi_id,
        }

    def finalise(self, workroom_id: str, user_id: str) -> dict:
        """
        Record the caller's finalise flag.

        When the second side finalises, the chat locks, the task completes
        and the message history is scheduled for deletion.
        """
        with self.store.transaction():
            task, role = self.access(workroom_id, user_id)
            completed = task.finalise(role)
            self.store.tasks.put(task)

            if completed:
                thread = self._thread(workroom_id)
                thread.expire_at = task.finalised_at + timedelta(
                    days=self.settings.message_retention_days
                )
                self.store.workrooms.put(thread)

        state = {
            "workroom_id": workroom_id,
            "client_finalised": task.client_finalised,
            "worker_finalised": task.worker_finalised,
            "finalised_at": task.finalised_at.isoformat() if task.finalised_at else None,
        }
        if completed:
            logger.info("Workroom %s finalised", workroom_id)
            self._emit("workroom:finalised", state, workroom_id)
        return state

    # === Messages ===

    def _render(self, message: Message, users: Optional[dict] = None) -> dict:
        data = message.to_dict()
        users = users if users is not None else {}
        sender = users.get(message.sender) or self.store.users.get(message.sender)
        data["sender"] = (
            {"id": sender.id, "name": sender.name, "avatar": sender.avatar}
            if sender else {"id": message.sender, "name": "", "avatar": ""}
        )
        return data

    def list_messages(
        self,
        workroom_id: str,
        user_id: str,
        after: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        """Page through visible messages oldest first."""
        self.access(workroom_id, user_id)
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))

        thread = self._thread(workroom_id)
        if thread.is_expired():
            return {"items": [], "next_cursor": None}

        messages, next_cursor = thread.page(after=after, limit=limit)
        users = {u.id: u for u in self.store.users.all()}
        return {
            "items": [self._render(m, users) for m in messages],
            "next_cursor": next_cursor,
        }

    def post_message(
        self,
        workroom_id: str,
        user_id: str,
        text: str = "",
        attachments: Optional[list[Attachment]] = None,
    ) -> dict:
        text = (text or "").strip()
        attachments = attachments or []

        with self.store.transaction():
            task, _ = self.access(workroom_id, user_id)
            if task.is_finalised:
                raise ValidationFailed("Chat is finalized")
            if not text and not attachments:
                raise ValidationFailed("Message is empty")
            if len(text) > MAX_MESSAGE_LENGTH:
                raise ValidationFailed(f"Message exceeds {MAX_MESSAGE_LENGTH} characters")
            if len(attachments) > MAX_MESSAGE_ATTACHMENTS:
                raise ValidationFailed(f"At most {MAX_MESSAGE_ATTACHMENTS} attachments per message")

            thread = self._thread(workroom_id)
            message = Message(sender=user_id, text=text, attachments=attachments)
            thread.messages.append(message)
            thread.updated_at = datetime.utcnow()
            self.store.workrooms.put(thread)

        item = self._render(message)
        self._emit("message:new", {"workroom_id": workroom_id, **item}, workroom_id)
        return item

    def delete_message(self, workroom_id: str, user_id: str, message_id: str) -> dict:
        """Soft-delete one of the caller's own messages."""
        with self.store.transaction():
            self.access(workroom_id, user_id)
            thread = self._thread(workroom_id)
            message = thread.find(message_id)
            if message is None or message.deleted:
                raise NotFound("Message not found")
            if message.sender != user_id:
                raise Forbidden("You can only delete your own messages")
            thread.soft_delete(message_id)
            self.store.workrooms.put(thread)

        self._emit(
            "message:deleted", {"workroom_id": workroom_id, "id": message_id}, workroom_id
        )
        return {"id": message_id, "deleted": True}

    # === Administration ===

    def admin_view(self, workroom_id: str) -> dict:
        """Full workroom for moderators, including deleted messages."""
        task = self.require_task(workroom_id)
        thread = self._thread(workroom_id)
        users = {u.id: u for u in self.store.users.all()}
        return {
            "task": task.to_dict(),
            "client": users[task.created_by].summary() if task.created_by in users else None,
            "worker": (
                users[task.selected_applicant].summary()
                if task.selected_applicant in users else None
            ),
            "messages": [self._render(m, users) for m in thread.messages],
            "expire_at": thread.expire_at.isoformat() if thread.expire_at else None,
        }

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete message histories past their expiry. Returns how many."""
        now = now or datetime.utcnow()
        expired = self.store.workrooms.filter(lambda w: w.is_expired(now))
        removed = self.store.workrooms.remove_where(lambda w: w.is_expired(now))
        if self.media:
            for thread in expired:
                for message in thread.messages:
                    self.media.delete_all(message.attachments)
        if removed:
            logger.info("Purged %d expired workroom histories", removed)
        return removed
