from __future__ import annotations

import logging
import time
from typing import Any

import razorpay

from shopbot.core.config import APP_URL, PAYMENT_LINK_EXPIRY_HOURS
from shopbot.core.errors import ExternalServiceError
from shopbot.payments.base import PaymentLink, PaymentProvider

logger = logging.getLogger(__name__)


def _contact(phone: str) -> str:
    return phone if phone.startswith("+") else f"+{phone}"


class RazorpayPaymentProvider(PaymentProvider):
    SERVICE = "razorpay"

    def __init__(self, key_id: str, key_secret: str, *, client: Any = None) -> None:
        self.key_id = key_id
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def _call(self, operation: str, func, *args):
        try:
            return func(*args)
        except Exception as exc:
            logger.error("Razorpay %s failed: %s", operation, exc)
            raise ExternalServiceError(self.SERVICE, f"{operation} failed: {exc}") from exc

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
        payload = {
            "amount": int(amount_minor),
            "currency": currency,
            "accept_partial": False,
            "reference_id": reference_id,
            "description": description,
            "customer": {"name": customer_name or "Customer", "contact": _contact(customer_phone)},
            "notify": {"sms": False, "email": False},
            "reminder_enable": False,
            "notes": notes or {},
            "callback_url": f"{APP_URL}/payment/success",
            "callback_method": "get",
            "expire_by": expire_by or int(time.time()) + PAYMENT_LINK_EXPIRY_HOURS * 3600,
        }
        data = self._call("payment_link.create", self.client.payment_link.create, payload)
        link = PaymentLink.from_response(data)
        logger.info("payment link created %s for %s", link.id, reference_id)
        return link

    def fetch_payment_link(self, link_id: str) -> PaymentLink:
        return PaymentLink.from_response(self._call("payment_link.fetch", self.client.payment_link.fetch, link_id))

    def cancel_payment_link(self, link_id: str) -> PaymentLink:
        return PaymentLink.from_response(self._call("payment_link.cancel", self.client.payment_link.cancel, link_id))

    def refund_payment(self, payment_id: str, amount_minor: int | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if amount_minor is not None:
            data["amount"] = int(amount_minor)
        return self._call("payment.refund", self.client.payment.refund, payment_id, data)
