from types import SimpleNamespace

import pytest

from shopbot.core.errors import ExternalServiceError
from shopbot.payments.base import compute_webhook_signature, verify_webhook_signature
from shopbot.payments.events import parse_razorpay_event
from shopbot.payments.mock_provider import MockPaymentProvider
from shopbot.payments.razorpay_provider import RazorpayPaymentProvider
from tests.fixtures_data import razorpay_link_event


class FakePaymentLinks:
    def __init__(self, fail=False):
        self.created = []
        self.fail = fail

    def create(self, payload):
        if self.fail:
            raise RuntimeError("BAD_REQUEST_ERROR")
        self.created.append(payload)
        return {"id": "plink_123", "short_url": "https://rzp.io/i/abc", "status": "created", "amount": payload["amount"]}

    def fetch(self, link_id):
        return {"id": link_id, "short_url": "https://rzp.io/i/abc", "status": "paid", "amount": 100}

    def cancel(self, link_id):
        return {"id": link_id, "short_url": "https://rzp.io/i/abc", "status": "cancelled", "amount": 100}


def _provider(fail=False):
    links = FakePaymentLinks(fail=fail)
    client = SimpleNamespace(payment_link=links, payment=SimpleNamespace(refund=lambda pid, data: {"payment_id": pid, **data}))
    return RazorpayPaymentProvider("rzp_test_key", "secret", client=client), links


def test_create_payment_link_sends_minor_units_and_reference():
    provider, links = _provider()

    link = provider.create_payment_link(
        amount_minor=14994,
        currency="INR",
        reference_id="ORD-ABC-1234",
        description="Order ORD-ABC-1234 - 3 item(s)",
        customer_phone="919812345678",
        customer_name="Priya",
        expire_by=1900000000,
    )

    payload = links.created[0]
    assert payload["amount"] == 14994
    assert payload["reference_id"] == "ORD-ABC-1234"
    assert payload["customer"]["contact"] == "+919812345678"
    assert payload["expire_by"] == 1900000000
    assert payload["callback_url"].endswith("/payment/success")
    assert link.id == "plink_123"
    assert link.short_url == "https://rzp.io/i/abc"
    assert link.amount_minor == 14994


def test_provider_errors_become_external_service_errors():
    provider, _ = _provider(fail=True)

    with pytest.raises(ExternalServiceError):
        provider.create_payment_link(
            amount_minor=100,
            currency="INR",
            reference_id="ORD-1",
            description="x",
            customer_phone="+911",
        )


def test_fetch_cancel_and_refund():
    provider, _ = _provider()

    assert provider.fetch_payment_link("plink_1").status == "paid"
    assert provider.cancel_payment_link("plink_1").status == "cancelled"
    assert provider.refund_payment("pay_1", 500) == {"payment_id": "pay_1", "amount": 500}


def test_webhook_signature_round_trip():
    body = b'{"event":"payment_link.paid"}'
    signature = compute_webhook_signature(body, "whsec")

    assert verify_webhook_signature(body, signature, "whsec")
    assert not verify_webhook_signature(body, signature, "other")
    assert not verify_webhook_signature(body + b" ", signature, "whsec")
    assert not verify_webhook_signature(body, None, "whsec")
    assert not verify_webhook_signature(body, signature, None)


@pytest.mark.parametrize("provider_cls", [RazorpayPaymentProvider, MockPaymentProvider])
def test_signature_checks_live_only_in_the_webhook_helper(provider_cls):
    assert not hasattr(provider_cls, "verify_webhook_signature")


def test_parse_paid_event():
    event = parse_razorpay_event(razorpay_link_event("payment_link.paid", "plink_9", payment_id="pay_9"))

    assert event.event == "payment_link.paid"
    assert event.payment_link_id == "plink_9"
    assert event.payment_id == "pay_9"
    assert event.payment_method == "upi"


def test_parse_event_reads_payments_array_when_entity_missing():
    payload = razorpay_link_event("payment_link.paid", "plink_9", payment_id="pay_9")
    del payload["payload"]["payment"]

    event = parse_razorpay_event(payload)

    assert event.payment_id == "pay_9"
