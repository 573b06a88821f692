"""Payout log model for freelancer compensation."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import quote, urlencode

from .common import from_iso, new_id, to_iso


def split_fee(gross_amount: int, fee_percentage: float) -> tuple[int, int]:
    """Split a task price into (platform fee, net payout), rounded to whole rupees."""
    fee = int(round(gross_amount * fee_percentage / 100))
    return fee, gross_amount - fee


def build_upi_link(upi_id: str, payee_name: str, amount: int, note: str, currency: str = "INR") -> str:
    """Build a ``upi://pay`` deep link the admin can open to pay out."""
    query = urlencode(
        {"pa": upi_id, "pn": payee_name, "am": str(amount), "cu": currency, "tn": note},
        safe="!*'()",
        quote_via=quote,
    )
    return f"upi://pay?{query}"


@dataclass
class PaymentLog:
    """A payout request raised by a freelancer once work is done."""

    # Identity
    id: str = field(default_factory=lambda: new_id("PAY"))
    workroom_id: str = ""
    task_id: str = ""
    freelancer_id: str = ""
    client_id: str = ""

    # Amount
    gross_amount: int = 0  # Task price
    fee: int = 0           # Platform fee
    net_amount: int = 0    # Amount to be paid
    currency: str = "INR"

    # Payout target
    upi_id: str = ""
    upi_link: str = ""

    # Status
    paid: bool = False
    paid_at: Optional[datetime] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def mark_paid(self, paid: bool = True) -> None:
        self.paid = paid
        self.paid_at = datetime.utcnow() if paid else None
        self.updated_at = datetime.utcnow()

    def to_dict(self) -> dict:
        """Serialize payment log to dictionary."""
        return {
            "id": self.id,
            "workroom_id": self.workroom_id,
            "task_id": self.task_id,
            "freelancer_id": self.freelancer_id,
            "client_id": self.client_id,
            "gross_amount": self.gross_amount,
            "fee": self.fee,
            "net_amount": self.net_amount,
            "currency": self.currency,
            "upi_id": self.upi_id,
            "upi_link": self.upi_link,
            "paid": self.paid,
            "paid_at": to_iso(self.paid_at),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentLog":
        """Deserialize payment log from dictionary."""
        log = cls(
            id=data.get("id") or new_id("PAY"),
            workroom_id=data.get("workroom_id", ""),
            task_id=data.get("task_id", ""),
            freelancer_id=data.get("freelancer_id", ""),
            client_id=data.get("client_id", ""),
            gross_amount=data.get("gross_amount", 0),
            fee=data.get("fee", 0),
            net_amount=data.get("net_amount", 0),
            currency=data.get("currency", "INR"),
            upi_id=data.get("upi_id", ""),
            upi_link=data.get("upi_link", ""),
            paid=data.get("paid", False),
            paid_at=from_iso(data.get("paid_at")),
        )

        if data.get("created_at"):
            log.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            log.updated_at = datetime.fromisoformat(data["updated_at"])

        return log
