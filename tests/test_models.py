"""Tests for the document models."""

from datetime import datetime, timedelta, timezone

import pytest

from cyphire.models import (
    AuthorRole,
    HelpTicket,
    Message,
    ParticipantRole,
    Plan,
    Task,
    TaskStatus,
    TicketStatus,
    User,
    WorkroomThread,
    build_upi_link,
    media_kind,
    slugify,
    split_fee,
)
from cyphire.models.intellectual import application_fingerprint


# ── Users ─────────────────────────────────────────────────────────────────

class TestUser:
    def test_password_round_trip(self):
        user = User(email="a@example.com")
        user.set_password("correct-horse-42")
        assert user.password_hash != "correct-horse-42"
        assert user.check_password("correct-horse-42")
        assert not user.check_password("wrong-password")

    def test_no_password_never_matches(self):
        assert not User(email="oauth@example.com").check_password("")

    def test_plan_limits(self):
        assert Plan.FREE.project_limit == 3
        assert Plan.PLUS.project_limit == 5
        assert Plan.ULTRA.project_limit == 10

    def test_paid_plan_expires(self):
        user = User()
        user.set_plan(Plan.PLUS, duration_days=30)
        assert user.plan_expires_at > datetime.utcnow() + timedelta(days=29)

        assert not user.downgrade_if_expired()
        assert user.downgrade_if_expired(now=datetime.utcnow() + timedelta(days=31))
        assert user.plan == Plan.FREE
        assert user.plan_expires_at is None

    def test_free_plan_clears_expiry(self):
        user = User()
        user.set_plan(Plan.ULTRA, duration_days=30)
        user.set_plan(Plan.FREE, duration_days=30)
        assert user.plan_expires_at is None

    def test_notifications_newest_first(self):
        user = User()
        user.notify("info", "first")
        user.notify("selection", "second")
        assert [n.message for n in user.notifications] == ["second", "first"]

    def test_signin_ips_keep_last_five(self):
        user = User()
        for n in range(7):
            user.record_signin_ip(f"10.0.0.{n}")
        user.record_signin_ip("10.0.0.4")
        assert user.last_signin_ips[0] == "10.0.0.4"
        assert len(user.last_signin_ips) == 5
        assert len(set(user.last_signin_ips)) == 5

    def test_public_dict_hides_private_fields(self):
        user = User(email="a@example.com", phone="+91 99999", signup_ip="10.0.0.1")
        user.notify("info", "hello")
        public = user.to_public_dict()
        for key in ("email", "phone", "notifications", "signup_ip", "last_signin_ips", "password_hash"):
            assert key not in public

    def test_storage_round_trip(self):
        user = User(email="a@example.com", name="Asha", skills=["python"])
        user.set_plan(Plan.PLUS, 30)
        user.notify("info", "hi")
        restored = User.from_dict(user.to_dict())
        assert restored.to_dict() == user.to_dict()


class TestSlugify:
    @pytest.mark.parametrize("name, slug", [
        ("Asha Rao", "asha-rao"),
        ("  Dev  Patel!! ", "dev-patel"),
        ("Élan_99", "lan-99"),
    ])
    def test_slugify(self, name, slug):
        assert slugify(name) == slug


# ── Tasks ─────────────────────────────────────────────────────────────────

class TestTask:
    def test_capacity(self):
        task = Task(created_by="owner", number_of_applicants=1)
        assert task.add_applicant("a")
        assert task.is_full
        assert not task.add_applicant("b")

    def test_zero_capacity_is_unlimited(self):
        task = Task(created_by="owner")
        for n in range(20):
            assert task.add_applicant(f"user-{n}")
        assert not task.is_full

    def test_select_opens_workroom(self):
        task = Task(created_by="owner")
        task.add_applicant("worker")
        assert task.select("worker", "1000000001")
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.workroom_id == "1000000001"
        assert not task.select("worker", "1000000002")

    def test_roles(self):
        task = Task(created_by="owner")
        task.add_applicant("worker")
        task.add_applicant("other")
        task.select("worker", "1000000001")
        assert task.role_of("owner") == ParticipantRole.CLIENT
        assert task.role_of("worker") == ParticipantRole.WORKER
        assert task.role_of("other") is None

    def test_finalise_handshake(self):
        task = Task(created_by="owner")
        task.add_applicant("worker")
        task.select("worker", "1000000001")

        assert not task.finalise(ParticipantRole.CLIENT)
        assert task.finalised_at is None
        assert task.finalise(ParticipantRole.WORKER)
        assert task.is_finalised
        assert task.status == TaskStatus.COMPLETED
        # Repeating does not complete twice
        assert not task.finalise(ParticipantRole.CLIENT)


# ── Payouts ───────────────────────────────────────────────────────────────

class TestPayout:
    def test_split_fee(self):
        assert split_fee(500, 20) == (100, 400)
        assert split_fee(999, 20) == (200, 799)

    def test_upi_link(self):
        link = build_upi_link("dev@upi", "Dev Patel", 400, "Cyphire payout for Logo")
        assert link.startswith("upi://pay?")
        assert "pa=dev%40upi" in link
        assert "pn=Dev%20Patel" in link
        assert "am=400" in link
        assert "cu=INR" in link
        assert "tn=Cyphire%20payout%20for%20Logo" in link

    def test_upi_link_escapes_like_uri_components(self):
        link = build_upi_link("a/b@upi", "O'Neil (Dev)", 1, "tip!")
        assert link == "upi://pay?pa=a%2Fb%40upi&pn=O'Neil%20(Dev)&am=1&cu=INR&tn=tip!"


# ── Workrooms ─────────────────────────────────────────────────────────────

class TestWorkroomThread:
    def _thread(self, count: int) -> WorkroomThread:
        thread = WorkroomThread(workroom_id="1000000001")
        for n in range(count):
            thread.messages.append(Message(sender="u", text=f"m{n}"))
        return thread

    def test_page_cursor(self):
        thread = self._thread(5)
        first, cursor = thread.page(limit=2)
        assert [m.text for m in first] == ["m0", "m1"]
        assert cursor == first[-1].id

        second, cursor = thread.page(after=cursor, limit=2)
        assert [m.text for m in second] == ["m2", "m3"]

        last, cursor = thread.page(after=cursor, limit=2)
        assert [m.text for m in last] == ["m4"]
        assert cursor is None

    def test_deleted_messages_hidden(self):
        thread = self._thread(3)
        deleted = thread.soft_delete(thread.messages[1].id)
        assert deleted.deleted_at is not None
        assert [m.text for m in thread.visible_messages()] == ["m0", "m2"]
        assert thread.soft_delete(thread.messages[1].id) is None

    def test_expiry(self):
        thread = WorkroomThread(workroom_id="1", expire_at=datetime.utcnow() + timedelta(days=7))
        assert not thread.is_expired()
        assert thread.is_expired(datetime.utcnow() + timedelta(days=8))


# ── Help ──────────────────────────────────────────────────────────────────

class TestHelpTicket:
    def test_close_and_reopen_add_system_comments(self):
        ticket = HelpTicket(user_id="u1", subject="Refund")
        ticket.close("u1", AuthorRole.USER, "Asha")
        assert ticket.is_closed
        assert ticket.closed_by == "u1"
        assert ticket.comments[-1].text == "User closed this ticket."

        ticket.reopen(None, AuthorRole.ADMIN, "Admin")
        assert ticket.status == TicketStatus.OPEN
        assert ticket.closed_at is None
        assert ticket.comments[-1].text == "Admin reopened this ticket."


# ── Misc ──────────────────────────────────────────────────────────────────

class TestHelpers:
    def test_media_kind(self):
        assert media_kind("image/png") == "image"
        assert media_kind("video/mp4") == "video"
        assert media_kind("application/pdf") == "file"
        assert media_kind("") == "file"

    def test_fingerprint_is_case_insensitive_and_daily(self):
        day = datetime(2026, 3, 1, 10, 0)
        a = application_fingerprint("u1", "coach", "Asha Rao", when=day)
        b = application_fingerprint("u1", "coach", "ASHA RAO", when=day + timedelta(minutes=20))
        c = application_fingerprint("u1", "coach", "Asha Rao", when=day + timedelta(days=1))
        assert a == b
        assert a != c

    def test_fingerprint_day_is_utc(self):
        naive = datetime(2026, 3, 1, 23, 30)
        aware = naive.replace(tzinfo=timezone.utc)
        shifted = datetime(2026, 3, 2, 4, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert application_fingerprint("u1", "coach", "Asha", when=naive) == application_fingerprint(
            "u1", "coach", "Asha", when=aware
        )
        # 04:00 IST is 22:30 UTC on the previous day
        assert application_fingerprint("u1", "coach", "Asha", when=shifted) == application_fingerprint(
            "u1", "coach", "Asha", when=aware
        )
