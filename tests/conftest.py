"""Shared fixtures: an app over a temporary data directory and a fake Razorpay client."""

import hashlib
import hmac
import itertools

import pytest

from cyphire.api import create_app
from cyphire.config import Settings
from cyphire.gateway import RazorpayGateway
from cyphire.workflows import AccountManager, TaskManager


KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"

ADMIN_EMAIL = "ops@cyphire.test"
ADMIN_PASSWORD = "console-password"
ADMIN_SECRET = "console-secret"


class FakeOrders:
    """Stands in for ``razorpay.Client().order``."""

    def __init__(self):
        self.created = []

    def create(self, data):
        order = {"id": f"order_{len(self.created) + 1}", "entity": "order", "status": "created", **data}
        self.created.append(order)
        return order


class FakeRazorpayClient:
    def __init__(self):
        self.order = FakeOrders()


def sign(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    """Signature the checkout widget would send back."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


@pytest.fixture
def sign_payment():
    return sign


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        jwt_secret="test-jwt-secret",
        admin_jwt_secret="test-admin-jwt-secret",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        admin_secret_key=ADMIN_SECRET,
        razorpay_key_id=KEY_ID,
        razorpay_key_secret=KEY_SECRET,
    )


@pytest.fixture
def razorpay_client() -> FakeRazorpayClient:
    return FakeRazorpayClient()


@pytest.fixture
def gateway(razorpay_client) -> RazorpayGateway:
    return RazorpayGateway(KEY_ID, KEY_SECRET, client=razorpay_client)


@pytest.fixture
def accounts(settings) -> AccountManager:
    return AccountManager(settings.data_dir, settings)


@pytest.fixture
def tasks(settings) -> TaskManager:
    return TaskManager(settings.data_dir, settings)


@pytest.fixture
def app(settings, gateway):
    app = create_app(settings=settings, gateway=gateway)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Test client without a cookie jar, so every request authenticates explicitly."""
    return app.test_client(use_cookies=False)


@pytest.fixture
def register(client):
    """
    Sign up users through the API, each from its own IP.

    Returns a function giving (user dict, request headers with the bearer token).
    """
    counter = itertools.count(1)

    def _register(name: str = "Asha Rao", email: str = None, password: str = "correct-horse-42"):
        n = next(counter)
        ip = f"10.0.0.{n}"
        response = client.post(
            "/api/auth/signup",
            json={"name": name, "email": email or f"user{n}@example.com", "password": password},
            headers={"X-Forwarded-For": ip},
        )
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        headers = {"Authorization": f"Bearer {body['token']}", "X-Forwarded-For": ip}
        return body["user"], headers

    return _register


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/admin/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "secret": ADMIN_SECRET},
    )
    assert response.status_code == 200, response.get_json()
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def awarded(client, register):
    """A task posted by a client and awarded to a freelancer through the API."""
    owner, owner_headers = register(name="Client Co")
    worker, worker_headers = register(name="Dev Patel")

    response = client.post(
        "/api/tasks",
        json={
            "title": "Landing page",
            "description": "Build a responsive landing page",
            "price": 500,
            "category": "Web",
            "number_of_applicants": 3,
        },
        headers=owner_headers,
    )
    task_id = response.get_json()["task"]["id"]
    client.post(f"/api/tasks/{task_id}/apply", headers=worker_headers)
    response = client.post(
        f"/api/tasks/{task_id}/select",
        json={"applicant_id": worker["id"]},
        headers=owner_headers,
    )
    assert response.status_code == 200, response.get_json()

    return {
        "task_id": task_id,
        "workroom_id": response.get_json()["workroom_id"],
        "owner": owner,
        "owner_headers": owner_headers,
        "worker": worker,
        "worker_headers": worker_headers,
    }
