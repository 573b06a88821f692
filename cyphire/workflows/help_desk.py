"""Help center: support tickets and the public Q&A."""

import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Optional, TypeVar

from ..config import Settings
from ..errors import Forbidden, NotFound, ValidationFailed
from ..models import (
    Attachment,
    AuditAction,
    AuditEntry,
    AuthorRole,
    HelpQuestion,
    HelpTicket,
    QuestionStatus,
    TicketComment,
    TicketStatus,
    TicketType,
    User,
)
from ..storage import DocumentStore


logger = logging.getLogger(__name__)

T = TypeVar("T")

ADMIN_NAME = "Admin"
MIN_ANSWER_LENGTH = 8
PUBLIC_QUESTION_COUNT = 20


def paginate(items: list[T], page: int = 1, limit: int = 50) -> dict:
    """Slice a list into one page plus totals."""
    page = max(1, int(page))
    limit = max(1, int(limit))
    start = (page - 1) * limit
    total = len(items)
    return {
        "items": items[start:start + limit],
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


class HelpDesk:
    """Manages support tickets and help questions."""

    def __init__(self, data_dir: Path, settings: Optional[Settings] = None):
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)

    # === Tickets ===

    def require_ticket(self, ticket_id: str) -> HelpTicket:
        ticket = self.store.tickets.get(ticket_id)
        if ticket is None:
            raise NotFound("Ticket not found")
        return ticket

    def create_ticket(
        self,
        user: User,
        type: TicketType,
        subject: str,
        description: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> HelpTicket:
        """Open a ticket. The description becomes the first comment."""
        ticket = HelpTicket(
            user_id=user.id,
            type=type,
            subject=subject.strip(),
            description=description.strip(),
            attachments=attachments or [],
        )
        ticket.add_comment(TicketComment(
            author_id=user.id,
            author_role=AuthorRole.USER,
            author_name=user.name,
            author_avatar=user.avatar,
            text=ticket.description,
            files=list(attachments or []),
        ))
        self.store.tickets.put(ticket)
        logger.info("[HELP] Ticket %s opened by %s (%s)", ticket.id, user.id, type.value)
        return ticket

    def get_ticket(self, ticket_id: str, user: User) -> HelpTicket:
        ticket = self.require_ticket(ticket_id)
        if ticket.user_id != user.id and not user.is_admin:
            raise Forbidden("Forbidden")
        return ticket

    def my_tickets(self, user_id: str) -> list[HelpTicket]:
        tickets = self.store.tickets.filter(lambda t: t.user_id == user_id)
        return sorted(tickets, key=lambda t: t.created_at, reverse=True)

    def post_comment(
        self,
        ticket_id: str,
        user: User,
        text: str,
        files: Optional[list[Attachment]] = None,
    ) -> HelpTicket:
        """Add a reply from the ticket owner or an admin user."""
        with self.store.transaction():
            ticket = self.get_ticket(ticket_id, user)
            if ticket.is_closed:
                raise ValidationFailed("Ticket is closed")

            is_admin_reply = user.is_admin and ticket.user_id != user.id
            ticket.add_comment(TicketComment(
                author_id=user.id,
                author_role=AuthorRole.ADMIN if is_admin_reply else AuthorRole.USER,
                author_name=user.name,
                author_avatar=user.avatar,
                text=text.strip(),
                files=files or [],
            ))
            if ticket.status == TicketStatus.OPEN:
                ticket.status = TicketStatus.IN_PROGRESS
            self.store.tickets.put(ticket)
        return ticket

    def close_ticket(self, ticket_id: str, user: User) -> HelpTicket:
        with self.store.transaction():
            ticket = self.get_ticket(ticket_id, user)
            if ticket.is_closed:
                raise ValidationFailed("Ticket is already closed")
            role = AuthorRole.ADMIN if user.is_admin and ticket.user_id != user.id else AuthorRole.USER
            ticket.close(user.id, role, user.name)
            self.store.tickets.put(ticket)
        return ticket

    def reopen_ticket(self, ticket_id: str, user: User) -> HelpTicket:
        with self.store.transaction():
            ticket = self.get_ticket(ticket_id, user)
            if not ticket.is_closed:
                raise ValidationFailed("Ticket is not closed")
            role = AuthorRole.ADMIN if user.is_admin and ticket.user_id != user.id else AuthorRole.USER
            ticket.reopen(user.id, role, user.name)
            self.store.tickets.put(ticket)
        return ticket

    def list_tickets(
        self,
        status: Optional[TicketStatus] = None,
        type: Optional[TicketType] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        tickets = self.store.tickets.all()
        if status:
            tickets = [t for t in tickets if t.status == status]
        if type:
            tickets = [t for t in tickets if t.type == type]
        if user_id:
            tickets = [t for t in tickets if t.user_id == user_id]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(tickets, page, limit)

    def admin_reply(
        self,
        ticket_id: str,
        text: str,
        status: Optional[TicketStatus] = None,
        files: Optional[list[Attachment]] = None,
    ) -> HelpTicket:
        """Reply as the console admin. Closing through a reply stamps closed_at."""
        text = (text or "").strip()
        if not text:
            raise ValidationFailed("Reply text is required")

        with self.store.transaction():
            ticket = self.require_ticket(ticket_id)
            ticket.add_comment(TicketComment(
                author_role=AuthorRole.ADMIN,
                author_name=ADMIN_NAME,
                text=text,
                files=files or [],
            ))
            ticket.status = status or TicketStatus.IN_PROGRESS
            if ticket.status == TicketStatus.CLOSED:
                ticket.closed_at = datetime.utcnow()
            self.store.tickets.put(ticket)
        logger.info("[HELP] Admin replied to ticket %s", ticket_id)
        return ticket

    # === Questions ===

    def require_question(self, question_id: str) -> HelpQuestion:
        question = self.store.questions.get(question_id)
        if question is None:
            raise NotFound("Question not found")
        return question

    def ask(self, user_id: str, text: str) -> HelpQuestion:
        text = (text or "").strip()
        if len(text) < 8:
            raise ValidationFailed("Question must be at least 8 characters")
        question = HelpQuestion(user_id=user_id, question=text)
        question.audit_log.append(AuditEntry(action=AuditAction.ASKED, user_id=user_id))
        self.store.questions.put(question)
        return question

    def public_questions(self, limit: int = PUBLIC_QUESTION_COUNT) -> list[HelpQuestion]:
        """Answered questions published on the help page, newest first."""
        questions = self.store.questions.filter(
            lambda q: q.status == QuestionStatus.ANSWERED and q.show_on_help_page
        )
        questions.sort(key=lambda q: q.answered_at or q.created_at, reverse=True)
        return questions[:limit]

    def list_questions(
        self,
        status: Optional[QuestionStatus] = None,
        user_id: Optional[str] = None,
        keyword: Optional[str] = None,
        page: int = 1,
        limit: int = 40,
    ) -> dict:
        questions = self.store.questions.all()
        if status:
            questions = [q for q in questions if q.status == status]
        if user_id:
            questions = [q for q in questions if q.user_id == user_id]
        if keyword:
            needle = keyword.lower()
            questions = [q for q in questions if needle in q.question.lower()]
        questions.sort(key=lambda q: q.created_at, reverse=True)
        return paginate(questions, page, limit)

    def _check_answer(self, answer: str) -> str:
        answer = (answer or "").strip()
        if len(answer) < MIN_ANSWER_LENGTH:
            raise ValidationFailed("Answer too short")
        return answer

    def answer(self, question_id: str, answer: str, by: Optional[str] = None) -> HelpQuestion:
        answer = self._check_answer(answer)
        with self.store.transaction():
            question = self.require_question(question_id)
            question.answer_with(answer, by)
            self.store.questions.put(question)
        return question

    def edit_answer(self, question_id: str, answer: str, by: Optional[str] = None) -> HelpQuestion:
        answer = self._check_answer(answer)
        with self.store.transaction():
            question = self.require_question(question_id)
            question.edit_answer(answer, by)
            self.store.questions.put(question)
        return question

    def set_show(self, question_id: str, show: bool, by: Optional[str] = None) -> HelpQuestion:
        with self.store.transaction():
            question = self.require_question(question_id)
            question.set_show(bool(show), by)
            self.store.questions.put(question)
        return question

    def audit_log(self, question_id: str) -> list[dict]:
        return [entry.to_dict() for entry in self.require_question(question_id).audit_log]
