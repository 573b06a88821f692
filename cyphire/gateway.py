"""Razorpay payment gateway wrapper."""

import hashlib
import hmac
import logging
import time
from typing import Any, Optional

from .errors import ServiceUnavailable


logger = logging.getLogger(__name__)


class RazorpayGateway:
    """
    Creates orders and checks checkout signatures.

    The Razorpay SDK client is built on first use so the API can start (and
    serve everything but payments) without credentials. Tests pass a fake
    ``client`` exposing ``order.create``.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        currency: str = "INR",
        client: Optional[Any] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.currency = currency
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.configured:
                raise ServiceUnavailable("Payment temporarily unavailable")
            import razorpay

            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    def create_order(self, amount: int) -> dict:
        """
        Create an order for a whole-rupee amount.

        Args:
            amount: Amount in rupees (converted to paise for the gateway)

        Returns:
            The gateway's order document (id, amount, currency, receipt, ...)
        """
        payload = {
            "amount": int(amount) * 100,
            "currency": self.currency,
            "receipt": f"rcpt_{int(time.time() * 1000)}",
        }
        order = self.client.order.create(data=payload)
        logger.info("[PAYMENT] Created order %s for amount %s", order.get("id"), amount)
        return order

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        message = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(self.key_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout callback's HMAC-SHA256 signature."""
        if not self.key_secret:
            raise ServiceUnavailable("Payment temporarily unavailable")
        expected = self.expected_signature(order_id, payment_id)
        valid = hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))
        if not valid:
            logger.warning("[PAYMENT] Invalid signature for order %s", order_id)
        return valid
