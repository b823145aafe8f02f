from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PAYMENT_LINK_PAID = "payment_link.paid"
PAYMENT_LINK_EXPIRED = "payment_link.expired"
PAYMENT_LINK_CANCELLED = "payment_link.cancelled"
PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"


@dataclass
class PaymentEvent:
    event: str
    payment_link_id: str | None
    payment_id: str | None = None
    payment_method: str | None = None
    amount_minor: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def parse_razorpay_event(payload: dict[str, Any]) -> PaymentEvent:
    event = payload.get("event") or ""
    body = payload.get("payload") or {}
    link = (body.get("payment_link") or {}).get("entity") or {}
    payment = (body.get("payment") or {}).get("entity") or {}

    payment_id = payment.get("id")
    payment_method = payment.get("method")
    # some deliveries only carry the payments array on the link entity
    payments = link.get("payments") or []
    if payments and not payment_id:
        payment_id = payments[0].get("payment_id")
        payment_method = payments[0].get("method")

    amount = link.get("amount_paid") or link.get("amount") or payment.get("amount")
    return PaymentEvent(
        event=event,
        payment_link_id=link.get("id"),
        payment_id=payment_id,
        payment_method=payment_method,
        amount_minor=int(amount) if amount is not None else None,
        raw=payload,
    )
