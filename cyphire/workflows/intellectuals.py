"""Intellectuals programme: applications from professors, influencers, experts and coaches."""

import logging
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..errors import Forbidden, NotFound, ValidationFailed
from ..models import (
    ApplicationStatus,
    Attachment,
    IntellectualApplication,
    IntellectualCategory,
    User,
)
from ..models.intellectual import application_fingerprint
from ..storage import DocumentStore
from .help_desk import paginate


logger = logging.getLogger(__name__)

REVIEW_STATUSES = (
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
)


class IntellectualsProgramme:
    """Manages intellectual applications and their review."""

    def __init__(self, data_dir: Path, settings: Optional[Settings] = None):
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)

    def require_application(self, application_id: str) -> IntellectualApplication:
        application = self.store.applications.get(application_id)
        if application is None:
            raise NotFound("Not found")
        return application

    def find_duplicate(self, user_id: str, category: IntellectualCategory, full_name: str) -> Optional[IntellectualApplication]:
        """Today's application with the same user, category and name, if any."""
        fingerprint = application_fingerprint(user_id, category.value, full_name)
        return self.store.applications.first(
            lambda a: a.fingerprint == fingerprint and a.user_id == user_id
        )

    def submit(
        self,
        user_id: str,
        category: IntellectualCategory,
        profile: dict,
        details: dict,
        attachments: Optional[list[Attachment]] = None,
    ) -> IntellectualApplication:
        """Submit an application. Returns the existing one for a same-day duplicate."""
        full_name = profile.get("full_name", "")
        fingerprint = application_fingerprint(user_id, category.value, full_name)

        with self.store.transaction():
            duplicate = self.find_duplicate(user_id, category, full_name)
            if duplicate:
                return duplicate

            application = IntellectualApplication(
                user_id=user_id,
                category=category,
                status=ApplicationStatus.SUBMITTED,
                profile=profile,
                details=details,
                attachments=attachments or [],
                fingerprint=fingerprint,
            )
            application.log("CREATE", user_id, "New application submitted")
            self.store.applications.put(application)

        logger.info("Intellectual application %s submitted by %s", application.id, user_id)
        return application

    def mine(self, user_id: str) -> list[IntellectualApplication]:
        apps = self.store.applications.filter(lambda a: a.user_id == user_id)
        return sorted(apps, key=lambda a: a.created_at, reverse=True)

    def get(self, application_id: str, user: User) -> IntellectualApplication:
        application = self.require_application(application_id)
        if application.user_id != user.id and not user.is_admin:
            raise Forbidden("Forbidden")
        return application

    def approved(self, category: Optional[IntellectualCategory] = None) -> list[IntellectualApplication]:
        """Publicly listed intellectuals."""
        apps = self.store.applications.filter(lambda a: a.status == ApplicationStatus.APPROVED)
        if category:
            apps = [a for a in apps if a.category == category]
        return sorted(apps, key=lambda a: a.updated_at, reverse=True)

    def search(
        self,
        status: Optional[ApplicationStatus] = None,
        category: Optional[IntellectualCategory] = None,
        q: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        apps = self.store.applications.all()
        if status:
            apps = [a for a in apps if a.status == status]
        if category:
            apps = [a for a in apps if a.category == category]
        if q:
            needle = q.lower()

            def matches(a: IntellectualApplication) -> bool:
                socials = a.profile.get("socials") or {}
                haystack = [
                    a.profile.get("full_name", ""),
                    socials.get("linkedin", ""),
                    socials.get("twitter", ""),
                ]
                return any(needle in (h or "").lower() for h in haystack)

            apps = [a for a in apps if matches(a)]
        apps.sort(key=lambda a: a.created_at, reverse=True)
        return paginate(apps, page, limit)

    def update_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        by: str,
        note: str = "",
    ) -> IntellectualApplication:
        if status not in REVIEW_STATUSES:
            raise ValidationFailed("Invalid status")
        with self.store.transaction():
            application = self.require_application(application_id)
            application.status = status
            if note:
                application.add_review_note(note)
            application.log("STATUS_CHANGE", by, f"Status -> {status.value}")
            self.store.applications.put(application)
        logger.info("Intellectual application %s -> %s", application_id, status.value)
        return application

    def add_review_note(self, application_id: str, note: str, by: str) -> IntellectualApplication:
        note = (note or "").strip()
        if len(note) < 3:
            raise ValidationFailed("Note too short")
        with self.store.transaction():
            application = self.require_application(application_id)
            application.add_review_note(note)
            application.log("REVIEW_NOTE", by, note)
            self.store.applications.put(application)
        return application
