from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class PaymentLink:
    id: str
    short_url: str
    status: str
    amount_minor: int
    reference_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "PaymentLink":
        return cls(
            id=data["id"],
            short_url=data.get("short_url") or "",
            status=data.get("status") or "created",
            amount_minor=int(data.get("amount") or 0),
            reference_id=data.get("reference_id"),
            raw=data,
        )


class PaymentProvider(Protocol):
    def create_payment_link(
        self,
        *,
        amount_minor: int,
        currency: str,
        reference_id: str,
        description: str,
        customer_phone: str,
        customer_name: str | None = None,
        expire_by: int | None = None,
        notes: dict[str, str] | None = None,
    ) -> PaymentLink:
        ...

    def fetch_payment_link(self, link_id: str) -> PaymentLink:
        ...

    def cancel_payment_link(self, link_id: str) -> PaymentLink:
        ...

    def refund_payment(self, payment_id: str, amount_minor: int | None = None) -> dict[str, Any]:
        ...


def compute_webhook_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_webhook_signature(body, secret), signature.strip())
