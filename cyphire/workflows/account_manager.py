"""Account management: signup, sign-in, profiles, plans, notifications and IP blocks."""

import logging
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional, Union

from ..config import Settings
from ..errors import Conflict, Forbidden, NotFound, RateLimited, Unauthorized, ValidationFailed
from ..media import MediaStore
from ..models import Attachment, BlockedIp, Plan, Project, User, slugify
from ..models.user import MAX_PROJECT_MEDIA
from ..storage import DocumentStore


logger = logging.getLogger(__name__)

MAX_SKILLS = 20
MAX_SKILL_LENGTH = 32


def normalize_skills(skills: Union[str, Iterable[str], None]) -> list[str]:
    """Accept a list or a comma-separated string; trim, drop empties, clamp."""
    if skills is None:
        return []
    if isinstance(skills, str):
        skills = skills.split(",")
    cleaned = [str(s).strip()[:MAX_SKILL_LENGTH] for s in skills]
    return [s for s in cleaned if s][:MAX_SKILLS]


class AccountManager:
    """Manages user accounts on the platform."""

    def __init__(
        self,
        data_dir: Path,
        settings: Optional[Settings] = None,
        media: Optional[MediaStore] = None,
    ):
        """Initialize account manager with data directory."""
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)
        self.media = media

    # === Lookup ===

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return self.store.users.get(user_id)

    def require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = (email or "").strip().lower()
        return self.store.users.first(lambda u: u.email == email)

    def current_user(self, user_id: str) -> User:
        """Load the signed-in user, downgrading an expired plan on the way."""
        with self.store.transaction():
            user = self.require_user(user_id)
            if user.downgrade_if_expired():
                self.store.users.put(user)
                logger.info("Plan expired for %s, downgraded to free", user.id)
        return user

    # === Slugs ===

    def unique_slug(self, base: str, exclude_user_id: Optional[str] = None) -> str:
        """Return ``base`` or ``base-1``, ``base-2``... whichever is unused."""
        base = slugify(base) or f"user-{uuid.uuid4().hex[:6]}"
        taken = {
            u.slug for u in self.store.users.all()
            if u.slug and u.id != exclude_user_id
        }
        if base not in taken:
            return base
        n = 1
        while f"{base}-{n}" in taken:
            n += 1
        return f"{base}-{n}"

    def ensure_slug(self, user_id: str) -> User:
        with self.store.transaction():
            user = self.require_user(user_id)
            if not user.slug:
                user.slug = self.unique_slug(user.name or user.email.split("@")[0], user.id)
                user.updated_at = datetime.utcnow()
                self.store.users.put(user)
        return user

    def backfill_slugs(self) -> int:
        """Give every user without a slug one. Returns how many were fixed."""
        fixed = 0
        with self.store.transaction():
            for user in self.store.users.all():
                if not user.slug:
                    self.ensure_slug(user.id)
                    fixed += 1
        return fixed

    def public_profile(self, slug: str) -> User:
        user = self.store.users.first(lambda u: u.slug == slug)
        if user is None:
            raise NotFound("Profile not found")
        return user

    # === Auth ===

    def is_ip_blocked(self, ip: str) -> bool:
        return bool(ip) and self.store.blocked_ips.get(ip) is not None

    def signup(self, name: str, email: str, password: str, ip: str = "") -> User:
        """Register an email/password account."""
        email = email.strip().lower()

        with self.store.transaction():
            if self.is_ip_blocked(ip):
                logger.warning("Signup refused for blocked IP %s", ip)
                raise Forbidden("Signups from this IP are blocked")

            if ip:
                since = datetime.utcnow() - timedelta(days=1)
                recent = self.store.users.count(
                    lambda u: u.signup_ip == ip and u.created_at >= since
                )
                if recent >= self.settings.signups_per_ip_per_day:
                    logger.warning("Signup limit reached for IP %s", ip)
                    raise RateLimited("Too many signups from this IP. Try again later.")

            if self.get_user_by_email(email):
                raise Conflict("Email already registered")

            user = User(name=name.strip(), email=email, signup_ip=ip)
            user.set_password(password)
            user.slug = self.unique_slug(user.name or email.split("@")[0])
            self.store.users.put(user)

        logger.info("New signup %s (%s)", user.id, ip or "unknown ip")
        return user

    def signin(self, email: str, password: str, ip: str = "") -> User:
        """Check credentials and record the sign-in IP."""
        with self.store.transaction():
            if self.is_ip_blocked(ip):
                logger.warning("Sign-in refused for blocked IP %s", ip)
                raise Forbidden("Access from this IP is blocked")

            user = self.get_user_by_email(email)
            if user is None or not user.check_password(password):
                logger.info("Failed sign-in for %s", (email or "").strip().lower())
                raise Unauthorized("Invalid credentials")

            if user.is_blocked:
                raise Forbidden("Account is blocked")

            user.record_signin_ip(ip)
            user.downgrade_if_expired()
            self.store.users.put(user)
        return user

    # === Notifications ===

    def list_notifications(self, user_id: str) -> list[dict]:
        return [n.to_dict() for n in self.require_user(user_id).notifications]

    def mark_notification_read(self, user_id: str, index: int) -> list[dict]:
        with self.store.transaction():
            user = self.require_user(user_id)
            if index < 0 or index >= len(user.notifications):
                raise ValidationFailed("Invalid index")
            user.notifications[index].read = True
            self.store.users.put(user)
        return [n.to_dict() for n in user.notifications]

    def delete_notification(self, user_id: str, index: int) -> list[dict]:
        with self.store.transaction():
            user = self.require_user(user_id)
            if index < 0 or index >= len(user.notifications):
                raise ValidationFailed("Invalid index")
            del user.notifications[index]
            self.store.users.put(user)
        return [n.to_dict() for n in user.notifications]

    # === Profile ===

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        country: Optional[str] = None,
        phone: Optional[str] = None,
        skills: Union[str, list[str], None] = None,
        bio: Optional[str] = None,
    ) -> User:
        """Update profile fields. A new name regenerates the slug."""
        with self.store.transaction():
            user = self.require_user(user_id)

            if name is not None and name.strip() != user.name:
                user.name = name.strip()
                user.slug = self.unique_slug(user.name, user.id)
            if country is not None:
                user.country = country.strip()
            if phone is not None:
                user.phone = phone.strip()
            if skills is not None:
                user.skills = normalize_skills(skills)
            if bio is not None:
                user.bio = bio.strip()

            user.updated_at = datetime.utcnow()
            self.store.users.put(user)
        return user

    def set_avatar(self, user_id: str, attachment: Optional[Attachment]) -> User:
        if attachment is None:
            raise ValidationFailed("No file uploaded")
        with self.store.transaction():
            user = self.require_user(user_id)
            user.avatar = attachment.url
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)
        return user

    # === Projects ===

    def _check_index(self, user: User, index: int) -> None:
        if index < 0 or index >= user.project_limit:
            raise ValidationFailed(
                f"Project index must be between 0 and {user.project_limit - 1}"
            )

    def _existing_project(self, user: User, index: int) -> Project:
        self._check_index(user, index)
        if index >= len(user.projects):
            raise ValidationFailed("Project metadata missing; save it first")
        return user.projects[index]

    def require_project(self, user_id: str, index: int) -> Project:
        return self._existing_project(self.current_user(user_id), index)

    def save_projects(self, user_id: str, projects: list[dict]) -> User:
        """Replace project metadata, keeping media of projects at the same index."""
        with self.store.transaction():
            user = self.current_user(user_id)
            limit = user.project_limit
            if len(projects) > limit:
                raise ValidationFailed(f"Maximum of {limit} projects allowed for your plan")

            cleaned = [
                {
                    "title": str(p.get("title") or "").strip(),
                    "description": str(p.get("description") or "").strip(),
                    "link": str(p.get("link") or "").strip(),
                }
                for p in projects
            ]
            if any(not p["title"] for p in cleaned):
                raise ValidationFailed("Each project must have a title")

            existing = user.projects
            user.projects = [
                Project(
                    title=p["title"],
                    description=p["description"],
                    link=p["link"],
                    media=existing[i].media if i < len(existing) else [],
                )
                for i, p in enumerate(cleaned)
            ]
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)
        return user

    def update_project(
        self,
        user_id: str,
        index: int,
        title: str,
        description: str = "",
        link: Optional[str] = None,
    ) -> User:
        title = (title or "").strip()
        if not title:
            raise ValidationFailed("Title is required")

        with self.store.transaction():
            user = self.current_user(user_id)
            self._check_index(user, index)
            while len(user.projects) < index + 1:
                user.projects.append(Project())

            project = user.projects[index]
            project.title = title
            project.description = (description or "").strip()
            if link is not None:
                project.link = link.strip()

            user.updated_at = datetime.utcnow()
            self.store.users.put(user)
        return user

    def delete_project(self, user_id: str, index: int) -> User:
        with self.store.transaction():
            user = self.current_user(user_id)
            project = self._existing_project(user, index)
            del user.projects[index]
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)

        if self.media:
            self.media.delete_all(project.media)
        return user

    def add_project_media(self, user_id: str, index: int, attachments: list[Attachment]) -> User:
        """Attach uploads to a project, keeping at most five media items."""
        if not attachments:
            raise ValidationFailed("No files uploaded")

        with self.store.transaction():
            user = self.current_user(user_id)
            project = self._existing_project(user, index)
            combined = project.media + attachments
            project.media = combined[:MAX_PROJECT_MEDIA]
            overflow = combined[MAX_PROJECT_MEDIA:]
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)

        if overflow and self.media:
            self.media.delete_all(overflow)
        return user

    def delete_project_media(self, user_id: str, index: int, public_id: str) -> User:
        with self.store.transaction():
            user = self.current_user(user_id)
            project = self._existing_project(user, index)
            removed = [m for m in project.media if m.public_id == public_id]
            if not removed:
                raise NotFound("Media not found")
            project.media = [m for m in project.media if m.public_id != public_id]
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)

        if self.media:
            self.media.delete_all(removed)
        return user

    # === Plans ===

    def set_plan(self, user_id: str, plan: Plan) -> User:
        with self.store.transaction():
            user = self.require_user(user_id)
            user.set_plan(plan, self.settings.plan_duration_days)
            self.store.users.put(user)
        logger.info("Plan for %s set to %s", user_id, plan.value)
        return user

    # === Administration ===

    def list_users(self) -> list[User]:
        """All users, newest first, with expired plans downgraded."""
        with self.store.transaction():
            users = self.store.users.all()
            for user in users:
                if user.downgrade_if_expired():
                    self.store.users.put(user)
        return sorted(users, key=lambda u: u.created_at, reverse=True)

    def get_statistics(self) -> dict:
        """Get user statistics for the admin console."""
        users = self.store.users.all()
        by_plan = {p.value: 0 for p in Plan}
        for user in users:
            by_plan[user.plan.value] += 1
        return {
            "total": len(users),
            "admins": sum(1 for u in users if u.is_admin),
            "blocked": sum(1 for u in users if u.is_blocked),
            "by_plan": by_plan,
        }

    def promote(self, email: str, is_admin: bool = True) -> User:
        with self.store.transaction():
            user = self.get_user_by_email(email)
            if user is None:
                raise NotFound("User not found")
            user.is_admin = is_admin
            self.store.users.put(user)
        return user

    def delete_user(self, user_id: str) -> None:
        """Delete a user with their tasks, workrooms, tickets and applications."""
        from .task_manager import TaskManager

        tasks = TaskManager(self.data_dir, self.settings, self.media)
        with self.store.transaction():
            user = self.require_user(user_id)

            for task in self.store.tasks.filter(lambda t: t.created_by == user_id):
                tasks.delete_task(task.id)

            for task in self.store.tasks.filter(lambda t: user_id in t.applicants):
                task.applicants = [a for a in task.applicants if a != user_id]
                self.store.tasks.put(task)

            self.store.payment_logs.remove_where(
                lambda p: p.freelancer_id == user_id or p.client_id == user_id
            )
            self.store.tickets.remove_where(lambda t: t.user_id == user_id)
            self.store.questions.remove_where(lambda q: q.user_id == user_id)
            self.store.applications.remove_where(lambda a: a.user_id == user_id)
            self.store.users.remove(user_id)

        if self.media:
            for project in user.projects:
                self.media.delete_all(project.media)
        logger.info("Deleted user %s and related data", user_id)

    def block_user(self, user_id: str, blocked: bool = True) -> User:
        """Block (or unblock) an account. Blocking also blocks its signup IP."""
        with self.store.transaction():
            user = self.require_user(user_id)
            user.is_blocked = blocked
            user.updated_at = datetime.utcnow()
            self.store.users.put(user)
            if blocked and user.signup_ip:
                self.block_ip(user.signup_ip, reason=f"Blocked with user {user.id}")
        logger.info("User %s %s", user_id, "blocked" if blocked else "unblocked")
        return user

    def block_ip(self, ip: str, reason: str = "") -> BlockedIp:
        ip = (ip or "").strip()
        if not ip:
            raise ValidationFailed("IP required")
        with self.store.transaction():
            entry = self.store.blocked_ips.get(ip) or BlockedIp(ip=ip, reason=reason)
            self.store.blocked_ips.put(entry)
        logger.warning("Blocked IP %s", ip)
        return entry

    def unblock_ip(self, ip: str) -> bool:
        ip = (ip or "").strip()
        if not ip:
            raise ValidationFailed("IP required")
        removed = self.store.blocked_ips.remove(ip)
        if removed:
            logger.info("Unblocked IP %s", ip)
        return removed

    def list_blocked_ips(self) -> list[BlockedIp]:
        return sorted(self.store.blocked_ips.all(), key=lambda b: b.created_at, reverse=True)

    def users_by_ip(self, ip: str) -> list[User]:
        ip = (ip or "").strip()
        if not ip:
            raise ValidationFailed("IP required")
        return self.store.users.filter(
            lambda u: u.signup_ip == ip or ip in u.last_signin_ips
        )
