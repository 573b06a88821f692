"""Workflow management for accounts, tasks, workrooms, payments and help."""

from .account_manager import AccountManager
from .task_manager import TaskManager
from .workroom_manager import WorkroomManager
from .payment_processor import PaymentProcessor
from .help_desk import HelpDesk
from .intellectuals import IntellectualsProgramme

__all__ = [
    "AccountManager",
    "TaskManager",
    "WorkroomManager",
    "PaymentProcessor",
    "HelpDesk",
    "IntellectualsProgramme",
]
