"""Task management: posting, applying, selecting and moderation."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..config import Settings
from ..errors import Forbidden, NotFound, ValidationFailed
from ..media import MediaStore
from ..models import Attachment, Task, TaskStatus, User
from ..storage import DocumentStore


logger = logging.getLogger(__name__)

APPLICATIONS_LINK = "/dashboard?tab=myApplications"


def normalize_categories(category: Any) -> list[str]:
    """Accept a string, list, or nested lists of categories."""
    if category is None:
        return []
    if isinstance(category, (list, tuple)):
        flat = []
        for item in category:
            flat.extend(normalize_categories(item))
        return flat
    text = str(category).strip()
    return [text] if text else []


class TaskManager:
    """Manages the lifecycle of tasks on the platform."""

    def __init__(
        self,
        data_dir: Path,
        settings: Optional[Settings] = None,
        media: Optional[MediaStore] = None,
    ):
        """Initialize task manager with data directory."""
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)
        self.media = media

    def get_task(self, task_id: str) -> Optional[Task]:
        """Get a task by ID."""
        return self.store.tasks.get(task_id)

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def get_task_by_workroom(self, workroom_id: str) -> Optional[Task]:
        return self.store.tasks.first(lambda t: t.workroom_id == workroom_id)

    def create_task(
        self,
        title: str,
        description: str,
        price: int,
        category: Any,
        created_by: str,
        number_of_applicants: int = 0,
        deadline: Optional[datetime] = None,
        attachments: Optional[list[Attachment]] = None,
        metadata: Optional[dict] = None,
        payment: Optional[dict] = None,
    ) -> Task:
        """Create a new task in pending status."""
        task = Task(
            title=title.strip(),
            description=description.strip(),
            price=int(price),
            category=normalize_categories(category),
            number_of_applicants=int(number_of_applicants or 0),
            deadline=deadline,
            created_by=created_by,
            status=TaskStatus.PENDING,
            attachments=attachments or [],
            metadata=metadata or {},
            payment=payment or {},
        )
        self.store.tasks.put(task)
        logger.info("Task %s created by %s", task.id, created_by)
        return task

    def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        category: Optional[str] = None,
        created_by: Optional[str] = None,
        include_flagged: bool = False,
    ) -> list[Task]:
        """List tasks newest first, with optional filters."""
        tasks = self.store.tasks.all()

        if status:
            tasks = [t for t in tasks if t.status == status]
        if category:
            wanted = category.lower()
            tasks = [t for t in tasks if any(c.lower() == wanted for c in t.category)]
        if created_by:
            tasks = [t for t in tasks if t.created_by == created_by]
        if not include_flagged:
            tasks = [t for t in tasks if not t.flagged]

        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    def list_applied(self, user_id: str) -> list[Task]:
        """Tasks a user has applied to, newest first."""
        tasks = self.store.tasks.filter(lambda t: user_id in t.applicants)
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    def user_summaries(self, user_ids: list[str]) -> list[dict]:
        """Resolve user ids to {id, name, avatar, slug}, skipping unknown ids."""
        users = {u.id: u for u in self.store.users.all()}
        return [users[uid].summary() for uid in user_ids if uid in users]

    def apply(self, task_id: str, user_id: str) -> tuple[Task, bool]:
        """
        Apply to a task.

        Returns:
            (task, created). ``created`` is False when the user had already
            applied.
        """
        with self.store.transaction():
            task = self.require_task(task_id)

            if task.created_by == user_id:
                raise ValidationFailed("You cannot apply to your own task")
            if task.has_applied(user_id):
                return task, False
            if task.selected_applicant:
                raise ValidationFailed("An applicant has already been selected")
            if task.is_full:
                raise ValidationFailed("Applications are full")

            task.add_applicant(user_id)
            self.store.tasks.put(task)

        logger.info("User %s applied to task %s", user_id, task_id)
        return task, True

    def select_applicant(
        self,
        task_id: str,
        owner_id: str,
        applicant_id: str,
        payment: Optional[dict] = None,
    ) -> Task:
        """
        Select one applicant, open a workroom and notify every applicant.

        Args:
            task_id: Task being awarded
            owner_id: User performing the selection (must own the task)
            applicant_id: Applicant being selected
            payment: Escrow reference recorded on the task, if any
        """
        with self.store.transaction():
            task = self.require_task(task_id)

            if task.created_by != owner_id:
                logger.warning("Unauthorized select attempt by %s on %s", owner_id, task_id)
                raise Forbidden("Only the task owner can select an applicant")
            if not task.has_applied(applicant_id):
                raise ValidationFailed("This user has not applied")
            if task.selected_applicant:
                raise ValidationFailed("An applicant has already been selected")

            task.select(applicant_id, self.store.next_workroom_id())
            if payment:
                task.payment = {**task.payment, **payment}
            self.store.tasks.put(task)
            self._notify_applicants(task)

        logger.info(
            "Task %s awarded to %s, workroom %s", task.id, applicant_id, task.workroom_id
        )
        return task

    def _notify_applicants(self, task: Task) -> None:
        for applicant_id in task.applicants:
            user = self.store.users.get(applicant_id)
            if user is None:
                continue
            if applicant_id == task.selected_applicant:
                user.notify(
                    "selection",
                    f'You have been selected for "{task.title}". Your workroom is ready.',
                    APPLICATIONS_LINK,
                )
            else:
                user.notify(
                    "rejection",
                    f'Another applicant was selected for "{task.title}".',
                    APPLICATIONS_LINK,
                )
            self.store.users.put(user)

    # === Moderation ===

    def update_status(self, task_id: str, status: TaskStatus) -> Task:
        with self.store.transaction():
            task = self.require_task(task_id)
            task.status = status
            task.updated_at = datetime.utcnow()
            self.store.tasks.put(task)
        logger.info("Task %s status set to %s", task_id, status.value)
        return task

    def flag_task(self, task_id: str, flagged: bool = True) -> Task:
        with self.store.transaction():
            task = self.require_task(task_id)
            task.flagged = flagged
            task.updated_at = datetime.utcnow()
            self.store.tasks.put(task)
        return task

    def delete_task(self, task_id: str) -> None:
        """Delete a task with its workroom messages and stored attachments."""
        with self.store.transaction():
            task = self.require_task(task_id)
            thread = None
            if task.workroom_id:
                thread = self.store.workrooms.get(task.workroom_id)
                self.store.workrooms.remove(task.workroom_id)
            self.store.tasks.remove(task_id)

        if self.media:
            self.media.delete_all(task.attachments)
            if thread:
                for message in thread.messages:
                    self.media.delete_all(message.attachments)
        logger.info("Deleted task %s", task_id)

    def get_statistics(self) -> dict:
        """Get task statistics for the admin console."""
        tasks = self.store.tasks.all()
        by_status = {s.value: 0 for s in TaskStatus}
        for task in tasks:
            by_status[task.status.value] += 1
        return {
            "total": len(tasks),
            "by_status": by_status,
            "flagged": sum(1 for t in tasks if t.flagged),
        }

    def owner_of(self, task: Task) -> Optional[User]:
        return self.store.users.get(task.created_by)
