from shopbot.payments import factory as payments_factory
from shopbot.payments.mock_provider import MockPaymentProvider
from shopbot.payments.razorpay_provider import RazorpayPaymentProvider
from shopbot.whatsapp import service as whatsapp_service
from shopbot.whatsapp.cloud_provider import CloudWhatsAppProvider
from shopbot.whatsapp.mock_provider import MockWhatsAppProvider
from tests.fixtures_data import tenant_config


def test_mock_payments_outside_production(monkeypatch):
    monkeypatch.setattr(payments_factory, "IS_PROD", False)
    monkeypatch.setattr(payments_factory, "PAYMENTS_PROVIDER", "mock")

    assert isinstance(payments_factory.build_payment_provider(tenant_config()), MockPaymentProvider)


def test_production_never_builds_mock_payments(monkeypatch):
    monkeypatch.setattr(payments_factory, "IS_PROD", True)
    monkeypatch.setattr(payments_factory, "PAYMENTS_PROVIDER", "mock")

    provider = payments_factory.build_payment_provider(tenant_config(razorpay_key_id="", razorpay_key_secret=""))

    assert isinstance(provider, RazorpayPaymentProvider)


def test_production_never_selects_mock_whatsapp(monkeypatch):
    monkeypatch.setattr(whatsapp_service, "IS_PROD", True)
    monkeypatch.setattr(whatsapp_service, "WHATSAPP_PROVIDER", "mock")

    provider = whatsapp_service.select_provider(tenant_config(access_token=""))

    assert isinstance(provider, CloudWhatsAppProvider)


def test_mock_whatsapp_keeps_bounded_history():
    provider = MockWhatsAppProvider(max_history=3)
    config = tenant_config()

    for n in range(5):
        provider.send_text(config, to_phone="919812345678", text=f"msg {n}")
        provider.mark_as_read(config, message_id=f"wamid.{n}")

    assert [message["text"] for message in provider.sent] == ["msg 2", "msg 3", "msg 4"]
    assert provider.read_receipts == ["wamid.2", "wamid.3", "wamid.4"]
