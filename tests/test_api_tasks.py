"""API tests for task posting, applications, selection and checkout."""

import io
import json
from types import SimpleNamespace

import pytest

from cyphire.api import security
from cyphire.api.security import RateLimiter


TASK = {
    "title": "Logo design",
    "description": "A clean logo for a bakery",
    "price": 300,
    "category": ["Design"],
    "number_of_applicants": 2,
}


# ── Tasks ─────────────────────────────────────────────────────────────────

class TestTasks:
    def test_post_and_browse(self, client, register):
        owner, headers = register(name="Client Co")
        response = client.post("/api/tasks", json=TASK, headers=headers)
        assert response.status_code == 201
        task = response.get_json()["task"]
        assert task["status"] == "pending"
        assert task["creator"]["id"] == owner["id"]

        listed = client.get("/api/tasks?category=design").get_json()["tasks"]
        assert [t["id"] for t in listed] == [task["id"]]
        assert client.get("/api/tasks?category=web").get_json()["tasks"] == []
        assert client.get(f"/api/tasks/{task['id']}").status_code == 200
        assert client.get("/api/tasks/TASK-MISSING").status_code == 404

    def test_invalid_status_filter(self, client):
        response = client.get("/api/tasks?status=archived")
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid status: archived"

    def test_post_requires_login(self, client):
        assert client.post("/api/tasks", json=TASK).status_code == 401

    def test_post_validation(self, client, register):
        _, headers = register()
        response = client.post("/api/tasks", json={**TASK, "price": 0, "category": []}, headers=headers)
        assert response.status_code == 400
        fields = {d["field"] for d in response.get_json()["details"]}
        assert fields == {"price", "category"}

    def test_multipart_post_with_attachment(self, client, register):
        _, headers = register()
        response = client.post(
            "/api/tasks",
            data={
                "title": "Brochure",
                "description": "Two page brochure",
                "price": "450",
                "category": ["Design", "Print"],
                "number_of_applicants": "1",
                "metadata": json.dumps({"pages": 2}),
                "attachments": (io.BytesIO(b"%PDF-1.4"), "brief.pdf", "application/pdf"),
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 201, response.get_json()
        task = response.get_json()["task"]
        assert task["price"] == 450
        assert task["category"] == ["Design", "Print"]
        assert task["metadata"] == {"pages": 2}
        assert task["attachments"][0]["original_name"] == "brief.pdf"
        assert task["attachments"][0]["type"] == "file"

    def test_multipart_bad_metadata(self, client, register):
        _, headers = register()
        response = client.post(
            "/api/tasks",
            data={**{k: str(v) for k, v in TASK.items() if k != "category"}, "category": "Design", "metadata": "{oops"},
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid JSON in metadata"

    def test_apply_flow(self, client, register):
        _, owner_headers = register(name="Client Co")
        worker, worker_headers = register(name="Dev Patel")
        task_id = client.post("/api/tasks", json=TASK, headers=owner_headers).get_json()["task"]["id"]

        first = client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers).get_json()
        assert first["message"] == "Applied successfully"
        assert first["task"]["applicants"][0]["name"] == "Dev Patel"
        again = client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers).get_json()
        assert again["message"] == "Already applied"

        own = client.post(f"/api/tasks/{task_id}/apply", headers=owner_headers)
        assert own.status_code == 400

        applied = client.get("/api/tasks/applied", headers=worker_headers).get_json()["tasks"]
        assert [t["id"] for t in applied] == [task_id]
        mine = client.get("/api/tasks/mine", headers=owner_headers).get_json()["tasks"]
        assert [t["id"] for t in mine] == [task_id]

    def test_select(self, client, awarded):
        task = client.get(f"/api/tasks/{awarded['task_id']}").get_json()["task"]
        assert task["status"] == "in-progress"
        assert task["selected_applicant"] == awarded["worker"]["id"]
        assert awarded["workroom_id"] == "1000000001"

    def test_only_owner_selects(self, client, register):
        _, owner_headers = register()
        worker, worker_headers = register()
        task_id = client.post("/api/tasks", json=TASK, headers=owner_headers).get_json()["task"]["id"]
        client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers)

        response = client.post(
            f"/api/tasks/{task_id}/select", json={"applicant_id": worker["id"]}, headers=worker_headers,
        )
        assert response.status_code == 403


# ── Checkout ──────────────────────────────────────────────────────────────

class TestPayments:
    def test_public_key(self, client):
        assert client.get("/api/payment/public-key").get_json() == {"key_id": "rzp_test_key"}

    def test_create_order(self, client, register):
        _, headers = register()
        response = client.post("/api/payment/create-order", json={"amount": 300}, headers=headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["order"]["amount"] == 30000

    def test_order_rate_limit(self, client, register):
        _, headers = register()
        for _ in range(10):
            client.post("/api/payment/create-order", json={"amount": 1}, headers=headers)
        response = client.post("/api/payment/create-order", json={"amount": 1}, headers=headers)
        assert response.status_code == 429

    def test_verify_payment_posts_task(self, client, register, sign_payment):
        _, headers = register()
        response = client.post(
            "/api/payment/verify-payment",
            json={
                **TASK,
                "razorpay_order_id": "order_9",
                "razorpay_payment_id": "pay_9",
                "razorpay_signature": sign_payment("order_9", "pay_9"),
            },
            headers=headers,
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["task"]["payment"]["payment_id"] == "pay_9"

    def test_forged_signature(self, client, register):
        _, headers = register()
        response = client.post(
            "/api/payment/verify-payment",
            json={
                **TASK,
                "razorpay_order_id": "order_9",
                "razorpay_payment_id": "pay_9",
                "razorpay_signature": "0" * 64,
            },
            headers=headers,
        )
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Invalid signature"}
        assert client.get("/api/tasks").get_json()["tasks"] == []

    def test_non_ascii_signature_rejected(self, client, register):
        _, owner_headers = register()
        worker, worker_headers = register()
        task_id = client.post("/api/tasks", json=TASK, headers=owner_headers).get_json()["task"]["id"]
        client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers)

        response = client.post(
            "/api/payment/verify-and-select",
            json={
                "razorpay_order_id": "order_4",
                "razorpay_payment_id": "pay_4",
                "razorpay_signature": "é" * 64,
                "task_id": task_id,
                "applicant_id": worker["id"],
            },
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Invalid signature"}

    def test_verify_and_select(self, client, register, sign_payment):
        _, owner_headers = register()
        worker, worker_headers = register()
        task_id = client.post("/api/tasks", json=TASK, headers=owner_headers).get_json()["task"]["id"]
        client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers)

        response = client.post(
            "/api/payment/verify-and-select",
            json={
                "razorpay_order_id": "order_3",
                "razorpay_payment_id": "pay_3",
                "razorpay_signature": sign_payment("order_3", "pay_3"),
                "task_id": task_id,
                "applicant_id": worker["id"],
            },
            headers=owner_headers,
        )
        assert response.status_code == 200
        body = response.get_json()
        assert body["workroom_id"] == "1000000001"
        assert body["task"]["payment"]["purpose"] == "escrow"

    def test_payment_flag_off(self, client, settings):
        settings.flags["FLAG_PAYMENT"] = False
        response = client.get("/api/payment/public-key")
        assert response.status_code == 403
        assert response.get_json()["error"] == "Feature FLAG_PAYMENT is disabled"


# ── Rate limiter ──────────────────────────────────────────────────────────

class TestRateLimiter:
    @pytest.fixture
    def clock(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(security, "time", SimpleNamespace(monotonic=lambda: now[0]))
        return now

    def test_window_slides(self, clock):
        limiter = RateLimiter()
        assert limiter.hit("orders", "10.0.0.1", 2, 60)
        assert limiter.hit("orders", "10.0.0.1", 2, 60)
        assert not limiter.hit("orders", "10.0.0.1", 2, 60)

        clock[0] += 61
        assert limiter.hit("orders", "10.0.0.1", 2, 60)

    def test_idle_callers_are_dropped(self, clock):
        limiter = RateLimiter(sweep_interval=30)
        for n in range(50):
            limiter.hit("orders", f"10.1.0.{n}", 5, 60)
        assert len(limiter) == 50

        clock[0] += 61
        limiter.hit("orders", "10.2.0.1", 5, 60)
        assert len(limiter) == 1

    def test_callers_inside_their_window_are_kept(self, clock):
        limiter = RateLimiter(sweep_interval=0)
        limiter.hit("payout", "10.0.0.1", 10, 3600)
        clock[0] += 120
        limiter.hit("orders", "10.0.0.2", 10, 60)
        assert len(limiter) == 2
