"""Escrow handoff through Razorpay and freelancer payout logs."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..config import Settings
from ..errors import Conflict, Forbidden, NotFound, PaymentVerificationFailed, ServiceUnavailable, ValidationFailed
from ..gateway import RazorpayGateway
from ..media import MediaStore
from ..models import Attachment, PaymentLog, Task, build_upi_link, split_fee
from ..storage import DocumentStore
from .task_manager import TaskManager


logger = logging.getLogger(__name__)


class PaymentProcessor:
    """Handles gateway orders, escrow verification and payout requests."""

    def __init__(
        self,
        data_dir: Path,
        settings: Optional[Settings] = None,
        gateway: Optional[RazorpayGateway] = None,
        media: Optional[MediaStore] = None,
    ):
        """Initialize payment processor with data directory."""
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings(data_dir=self.data_dir)
        self.store = DocumentStore(self.data_dir)
        self.gateway = gateway or RazorpayGateway(
            self.settings.razorpay_key_id,
            self.settings.razorpay_key_secret,
            currency=self.settings.currency,
        )
        self.tasks = TaskManager(self.data_dir, self.settings, media)

    # === Checkout ===

    def public_key(self) -> str:
        if not self.gateway.key_id:
            raise ServiceUnavailable("Payment temporarily unavailable")
        return self.gateway.key_id

    def create_order(self, amount: int, user_id: str) -> dict:
        if int(amount) < 1:
            raise ValidationFailed("Invalid amount")
        order = self.gateway.create_order(int(amount))
        logger.info("[PAYMENT] Order %s requested by %s", order.get("id"), user_id)
        return order

    def verify(self, order_id: str, payment_id: str, signature: str) -> None:
        if not self.gateway.verify_signature(order_id, payment_id, signature):
            raise PaymentVerificationFailed("Invalid signature")

    def verify_and_create_task(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        user_id: str,
        title: str,
        description: str,
        price: int,
        category: Any,
        number_of_applicants: int,
        deadline: Optional[datetime] = None,
        attachments: Optional[list[Attachment]] = None,
        metadata: Optional[dict] = None,
    ) -> Task:
        """Post a task once the client's checkout signature checks out."""
        self.verify(order_id, payment_id, signature)
        task = self.tasks.create_task(
            title=title,
            description=description,
            price=price,
            category=category,
            created_by=user_id,
            number_of_applicants=number_of_applicants,
            deadline=deadline,
            attachments=attachments,
            metadata=metadata,
            payment={"order_id": order_id, "payment_id": payment_id, "purpose": "posting"},
        )
        logger.info("[PAYMENT] Task %s created after payment %s", task.id, payment_id)
        return task

    def verify_and_select(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        user_id: str,
        task_id: str,
        applicant_id: str,
    ) -> Task:
        """Escrow the task price, then award the task to an applicant."""
        self.verify(order_id, payment_id, signature)
        task = self.tasks.select_applicant(
            task_id,
            owner_id=user_id,
            applicant_id=applicant_id,
            payment={"order_id": order_id, "payment_id": payment_id, "purpose": "escrow"},
        )
        logger.info("[PAYMENT] Escrow %s funded workroom %s", payment_id, task.workroom_id)
        return task

    # === Payouts ===

    def create_payout_log(self, workroom_id: str, user_id: str, upi_id: str) -> PaymentLog:
        """
        Record a payout request from the selected freelancer.

        The platform keeps ``platform_fee_percent`` of the task price; the rest
        is payable to the given UPI id.
        """
        upi_id = (upi_id or "").strip()
        if "@" not in upi_id:
            raise ValidationFailed("Valid UPI ID required")

        with self.store.transaction():
            task = self.store.tasks.first(lambda t: t.workroom_id == workroom_id)
            if task is None:
                raise NotFound("Task not found")
            if task.selected_applicant != user_id:
                raise Forbidden("Only the selected freelancer can request payout")
            freelancer = self.store.users.get(user_id)
            if freelancer is None:
                raise NotFound("Freelancer not found")
            if self.store.payment_logs.first(lambda p: p.workroom_id == workroom_id):
                raise Conflict("Payout already requested for this workroom")

            fee, net = split_fee(task.price, self.settings.platform_fee_percent)
            log = PaymentLog(
                workroom_id=workroom_id,
                task_id=task.id,
                freelancer_id=freelancer.id,
                client_id=task.created_by,
                gross_amount=task.price,
                fee=fee,
                net_amount=net,
                currency=self.settings.currency,
                upi_id=upi_id,
                upi_link=build_upi_link(
                    upi_id,
                    freelancer.name,
                    net,
                    f"Cyphire payout for {task.title}",
                    currency=self.settings.currency,
                ),
            )
            self.store.payment_logs.put(log)

            task.payment_requested = True
            task.upi_id = upi_id
            task.updated_at = datetime.utcnow()
            self.store.tasks.put(task)

        logger.info("[PAYOUT] Created payout log %s for workroom %s", log.id, workroom_id)
        return log

    def list_payout_logs(self, paid: Optional[bool] = None) -> list[PaymentLog]:
        logs = self.store.payment_logs.all()
        if paid is not None:
            logs = [p for p in logs if p.paid == paid]
        return sorted(logs, key=lambda p: p.created_at, reverse=True)

    def set_paid(self, log_id: str, paid: bool) -> PaymentLog:
        with self.store.transaction():
            log = self.store.payment_logs.get(log_id)
            if log is None:
                raise NotFound("Payment log not found")
            log.mark_paid(paid)
            self.store.payment_logs.put(log)
        logger.info("[PAYOUT] Payment log %s marked %s", log_id, "paid" if paid else "unpaid")
        return log

    def get_statistics(self) -> dict:
        logs = self.store.payment_logs.all()
        return {
            "total": len(logs),
            "paid": sum(1 for p in logs if p.paid),
            "pending_amount": sum(p.net_amount for p in logs if not p.paid),
            "fees_collected": sum(p.fee for p in logs),
        }
