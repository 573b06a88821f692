"""User model for clients, freelancers and admins."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
import re

from werkzeug.security import check_password_hash, generate_password_hash

from .common import Attachment, from_iso, new_id, to_iso


class Plan(Enum):
    """Subscription tier. Limits how many portfolio projects a user may keep."""

    FREE = "free"
    PLUS = "plus"
    ULTRA = "ultra"

    @property
    def project_limit(self) -> int:
        limits = {
            Plan.FREE: 3,
            Plan.PLUS: 5,
            Plan.ULTRA: 10,
        }
        return limits[self]


MAX_PROJECT_MEDIA = 5
MAX_SIGNIN_IPS = 5


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumerics to single dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug


@dataclass
class Notification:
    """An entry in a user's notification inbox."""

    type: str = "info"  # selection, rejection, info
    message: str = ""
    link: str = ""
    read: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "link": self.link,
            "read": self.read,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notification":
        return cls(
            type=data.get("type", "info"),
            message=data.get("message", ""),
            link=data.get("link", ""),
            read=data.get("read", False),
            created_at=from_iso(data.get("created_at")) or datetime.utcnow(),
        )


@dataclass
class Project:
    """A portfolio project shown on the public profile."""

    title: str = ""
    description: str = ""
    link: str = ""
    media: list[Attachment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "media": [m.to_dict() for m in self.media],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            title=data.get("title", ""),
            description=data.get("description", ""),
            link=data.get("link", ""),
            media=[Attachment.from_dict(m) for m in data.get("media", [])],
        )


@dataclass
class User:
    """A marketplace account. Any user can post tasks and apply to others."""

    # Identity
    id: str = field(default_factory=lambda: new_id("USR"))
    email: str = ""
    name: str = ""
    password_hash: str = ""
    google_id: Optional[str] = None
    slug: str = ""

    # Profile
    avatar: str = ""
    country: str = ""
    phone: str = ""
    bio: str = ""
    skills: list[str] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)

    # Plan
    plan: Plan = Plan.FREE
    plan_expires_at: Optional[datetime] = None

    # Access
    is_admin: bool = False
    is_blocked: bool = False
    signup_ip: str = ""
    last_signin_ips: list[str] = field(default_factory=list)

    notifications: list[Notification] = field(default_factory=list)

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def set_plan(self, plan: Plan, duration_days: int) -> None:
        """Switch plan. Paid plans expire after ``duration_days``."""
        self.plan = plan
        if plan == Plan.FREE:
            self.plan_expires_at = None
        else:
            self.plan_expires_at = datetime.utcnow() + timedelta(days=duration_days)
        self.updated_at = datetime.utcnow()

    def downgrade_if_expired(self, now: Optional[datetime] = None) -> bool:
        """Drop an expired paid plan back to free. Returns True if changed."""
        now = now or datetime.utcnow()
        if self.plan != Plan.FREE and self.plan_expires_at and self.plan_expires_at < now:
            self.plan = Plan.FREE
            self.plan_expires_at = None
            self.updated_at = now
            return True
        return False

    def notify(self, type: str, message: str, link: str = "") -> Notification:
        """Push a notification to the front of the inbox."""
        notification = Notification(type=type, message=message, link=link)
        self.notifications.insert(0, notification)
        return notification

    def record_signin_ip(self, ip: str) -> None:
        if not ip:
            return
        self.last_signin_ips = ([ip] + [i for i in self.last_signin_ips if i != ip])[:MAX_SIGNIN_IPS]

    @property
    def project_limit(self) -> int:
        return self.plan.project_limit

    def summary(self) -> dict:
        """Compact reference used when embedding a user in other documents."""
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "slug": self.slug,
        }

    def to_public_dict(self) -> dict:
        """Profile as shown to anyone holding the slug."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "avatar": self.avatar,
            "country": self.country,
            "bio": self.bio,
            "skills": self.skills,
            "plan": self.plan.value,
            "projects": [p.to_dict() for p in self.projects],
            "created_at": to_iso(self.created_at),
        }

    def to_profile_dict(self) -> dict:
        """Profile as returned to the account owner (no secrets)."""
        data = self.to_public_dict()
        data.update({
            "email": self.email,
            "phone": self.phone,
            "plan_expires_at": to_iso(self.plan_expires_at),
            "is_admin": self.is_admin,
            "is_blocked": self.is_blocked,
            "updated_at": to_iso(self.updated_at),
        })
        return data

    def to_dict(self) -> dict:
        """Serialize user to dictionary (storage form)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "password_hash": self.password_hash,
            "google_id": self.google_id,
            "slug": self.slug,
            "avatar": self.avatar,
            "country": self.country,
            "phone": self.phone,
            "bio": self.bio,
            "skills": self.skills,
            "projects": [p.to_dict() for p in self.projects],
            "plan": self.plan.value,
            "plan_expires_at": to_iso(self.plan_expires_at),
            "is_admin": self.is_admin,
            "is_blocked": self.is_blocked,
            "signup_ip": self.signup_ip,
            "last_signin_ips": self.last_signin_ips,
            "notifications": [n.to_dict() for n in self.notifications],
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        """Deserialize user from dictionary."""
        user = cls(
            id=data.get("id") or new_id("USR"),
            email=data.get("email", ""),
            name=data.get("name", ""),
            password_hash=data.get("password_hash", ""),
            google_id=data.get("google_id"),
            slug=data.get("slug", ""),
            avatar=data.get("avatar", ""),
            country=data.get("country", ""),
            phone=data.get("phone", ""),
            bio=data.get("bio", ""),
            skills=data.get("skills", []),
            projects=[Project.from_dict(p) for p in data.get("projects", [])],
            plan=Plan(data.get("plan", "free")),
            plan_expires_at=from_iso(data.get("plan_expires_at")),
            is_admin=data.get("is_admin", False),
            is_blocked=data.get("is_blocked", False),
            signup_ip=data.get("signup_ip", ""),
            last_signin_ips=data.get("last_signin_ips", []),
            notifications=[Notification.from_dict(n) for n in data.get("notifications", [])],
        )

        if data.get("created_at"):
            user.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            user.updated_at = datetime.fromisoformat(data["updated_at"])

        return user


@dataclass
class BlockedIp:
    """An IP address refused at signup and sign-in."""

    ip: str = ""
    reason: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def id(self) -> str:
        return self.ip

    def to_dict(self) -> dict:
        return {
            "ip": self.ip,
            "reason": self.reason,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BlockedIp":
        return cls(
            ip=data.get("ip", ""),
            reason=data.get("reason", ""),
            created_at=from_iso(data.get("created_at")) or datetime.utcnow(),
        )
