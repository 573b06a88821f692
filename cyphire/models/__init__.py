"""Marketplace data models for users, tasks, workrooms, payouts and help."""

from .common import Attachment, media_kind
from .user import User, Plan, Project, Notification, BlockedIp, slugify
from .task import Task, TaskStatus, ParticipantRole
from .payment import PaymentLog, split_fee, build_upi_link
from .workroom import Message, WorkroomThread, MAX_MESSAGE_LENGTH
from .help import (
    HelpTicket,
    TicketComment,
    TicketType,
    TicketStatus,
    AuthorRole,
    HelpQuestion,
    QuestionStatus,
    AuditAction,
    AuditEntry,
)
from .intellectual import IntellectualApplication, IntellectualCategory, ApplicationStatus

__all__ = [
    "Attachment",
    "media_kind",
    # Users
    "User",
    "Plan",
    "Project",
    "Notification",
    "BlockedIp",
    "slugify",
    # Tasks
    "Task",
    "TaskStatus",
    "ParticipantRole",
    # Payouts
    "PaymentLog",
    "split_fee",
    "build_upi_link",
    # Workrooms
    "Message",
    "WorkroomThread",
    "MAX_MESSAGE_LENGTH",
    # Help
    "HelpTicket",
    "TicketComment",
    "TicketType",
    "TicketStatus",
    "AuthorRole",
    "HelpQuestion",
    "QuestionStatus",
    "AuditAction",
    "AuditEntry",
    # Intellectuals
    "IntellectualApplication",
    "IntellectualCategory",
    "ApplicationStatus",
]
