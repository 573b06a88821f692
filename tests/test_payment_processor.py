"""Tests for checkout verification and payout logs."""

import pytest

from cyphire.errors import Conflict, Forbidden, NotFound, PaymentVerificationFailed, ServiceUnavailable, ValidationFailed
from cyphire.gateway import RazorpayGateway
from cyphire.workflows import PaymentProcessor


@pytest.fixture
def payments(settings, gateway):
    return PaymentProcessor(settings.data_dir, settings, gateway=gateway)


@pytest.fixture
def people(accounts):
    owner = accounts.signup("Client Co", "client@example.com", "correct-horse-42")
    worker = accounts.signup("Dev Patel", "dev@example.com", "correct-horse-42")
    return owner, worker


@pytest.fixture
def workroom(tasks, people):
    owner, worker = people
    task = tasks.create_task("Landing page", "desc", 500, "Web", owner.id)
    tasks.apply(task.id, worker.id)
    return tasks.select_applicant(task.id, owner.id, worker.id).workroom_id


# ── Checkout ──────────────────────────────────────────────────────────────

class TestCheckout:
    def test_order_amount_in_paise(self, payments, razorpay_client):
        order = payments.create_order(500, "USR-1")
        assert order["amount"] == 50000
        assert order["currency"] == "INR"
        assert order["receipt"].startswith("rcpt_")
        assert razorpay_client.order.created == [order]

    def test_invalid_amount(self, payments):
        with pytest.raises(ValidationFailed):
            payments.create_order(0, "USR-1")

    def test_missing_key(self, settings):
        processor = PaymentProcessor(settings.data_dir, settings, gateway=RazorpayGateway("", ""))
        with pytest.raises(ServiceUnavailable):
            processor.public_key()
        with pytest.raises(ServiceUnavailable):
            processor.create_order(100, "USR-1")

    def test_verify_and_create_task(self, payments, people, sign_payment):
        owner, _ = people
        task = payments.verify_and_create_task(
            "order_1", "pay_1", sign_payment("order_1", "pay_1"), owner.id,
            title="Logo", description="desc", price=300, category="Design", number_of_applicants=2,
        )
        assert task.created_by == owner.id
        assert task.payment == {"order_id": "order_1", "payment_id": "pay_1", "purpose": "posting"}

    def test_bad_signature_creates_nothing(self, payments, people):
        owner, _ = people
        with pytest.raises(PaymentVerificationFailed):
            payments.verify_and_create_task(
                "order_1", "pay_1", "forged", owner.id,
                title="Logo", description="desc", price=300, category="Design", number_of_applicants=2,
            )
        assert payments.tasks.list_tasks() == []

    def test_verify_and_select(self, payments, tasks, people, sign_payment):
        owner, worker = people
        task = tasks.create_task("Site", "desc", 500, "Web", owner.id)
        tasks.apply(task.id, worker.id)

        task = payments.verify_and_select(
            "order_2", "pay_2", sign_payment("order_2", "pay_2"), owner.id, task.id, worker.id,
        )
        assert task.selected_applicant == worker.id
        assert task.payment["purpose"] == "escrow"


# ── Payouts ───────────────────────────────────────────────────────────────

class TestPayoutLogs:
    def test_fee_split_and_upi_link(self, payments, tasks, people, workroom):
        _, worker = people
        log = payments.create_payout_log(workroom, worker.id, " worker@upi ")

        assert log.gross_amount == 500
        assert log.fee == 100
        assert log.net_amount == 400
        assert "pa=worker%40upi" in log.upi_link
        assert "am=400" in log.upi_link

        task = tasks.get_task_by_workroom(workroom)
        assert task.payment_requested
        assert task.upi_id == "worker@upi"

    def test_one_request_per_workroom(self, payments, people, workroom):
        _, worker = people
        payments.create_payout_log(workroom, worker.id, "worker@upi")
        with pytest.raises(Conflict):
            payments.create_payout_log(workroom, worker.id, "worker@upi")

    def test_only_selected_freelancer(self, payments, people, workroom):
        owner, _ = people
        with pytest.raises(Forbidden):
            payments.create_payout_log(workroom, owner.id, "client@upi")

    def test_invalid_upi(self, payments, people, workroom):
        _, worker = people
        with pytest.raises(ValidationFailed, match="UPI"):
            payments.create_payout_log(workroom, worker.id, "not-a-upi")

    def test_mark_paid_and_filter(self, payments, people, workroom):
        _, worker = people
        log = payments.create_payout_log(workroom, worker.id, "worker@upi")

        assert [p.id for p in payments.list_payout_logs(paid=False)] == [log.id]
        updated = payments.set_paid(log.id, True)
        assert updated.paid and updated.paid_at is not None
        assert payments.list_payout_logs(paid=False) == []

        stats = payments.get_statistics()
        assert stats == {"total": 1, "paid": 1, "pending_amount": 0, "fees_collected": 100}

    def test_mark_unknown_log(self, payments):
        with pytest.raises(NotFound):
            payments.set_paid("PAY-MISSING", True)
