from __future__ import annotations

import time
import uuid
from threading import Lock
from typing import Any

from shopbot.core.config import PAYMENT_LINK_EXPIRY_HOURS
from shopbot.core.errors import ExternalServiceError
from shopbot.payments.base import PaymentLink, PaymentProvider


class MockPaymentProvider(PaymentProvider):
    """In-memory payment links for development and tests."""

    def __init__(self, *, fail_with: str | None = None) -> None:
        self.fail_with = fail_with
        self.links: dict[str, dict[str, Any]] = {}
        self.refunds: list[dict[str, Any]] = []
        self._lock = Lock()

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
        if self.fail_with:
            raise ExternalServiceError("mock_payments", self.fail_with)
        link_id = f"plink_mock_{uuid.uuid4().hex[:14]}"
        data = {
            "id": link_id,
            "short_url": f"https://rzp.io/i/{link_id[-8:]}",
            "status": "created",
            "amount": int(amount_minor),
            "currency": currency,
            "reference_id": reference_id,
            "description": description,
            "customer": {"name": customer_name, "contact": customer_phone},
            "notes": notes or {},
            "expire_by": expire_by or int(time.time()) + PAYMENT_LINK_EXPIRY_HOURS * 3600,
        }
        with self._lock:
            self.links[link_id] = data
        return PaymentLink.from_response(data)

    def fetch_payment_link(self, link_id: str) -> PaymentLink:
        data = self.links.get(link_id)
        if data is None:
            raise ExternalServiceError("mock_payments", f"unknown link {link_id}")
        return PaymentLink.from_response(data)

    def cancel_payment_link(self, link_id: str) -> PaymentLink:
        with self._lock:
            data = self.links.get(link_id)
            if data is None:
                raise ExternalServiceError("mock_payments", f"unknown link {link_id}")
            data["status"] = "cancelled"
        return PaymentLink.from_response(data)

    def refund_payment(self, payment_id: str, amount_minor: int | None = None) -> dict[str, Any]:
        refund = {"id": f"rfnd_mock_{uuid.uuid4().hex[:10]}", "payment_id": payment_id, "amount": amount_minor}
        with self._lock:
            self.refunds.append(refund)
        return refund
