"""Reusable data and builders for the ordering engine tests."""

from shopbot.core.crypto import encrypt_credential
from shopbot.models.tenant import Tenant
from shopbot.payments.base import compute_webhook_signature
from shopbot.services.geocoding import GeocodedAddress
from shopbot.services.tenant_resolver import TenantConfig

TENANT_ID = "tnt_acme00000001"
PHONE_NUMBER_ID = "109876543210"
CUSTOMER_PHONE = "919812345678"
WEBHOOK_SECRET = "whsec_tenant_acme"
DEFAULT_WEBHOOK_SECRET = "whsec_default"

TENANT_ROW = {
    "tenant_id": TENANT_ID,
    "business_name": "Acme Sarees",
    "business_phone": "+919800000000",
    "business_email": "owner@acmesarees.in",
    "phone_number_id": PHONE_NUMBER_ID,
    "business_account_id": "WABA-1",
    "access_token": "EAAG-test-access-token",
    "verify_token": "acme-verify",
    "catalog_id": "CAT-1",
    "razorpay_key_id": "rzp_test_acme",
    "razorpay_key_secret": "acme_key_secret",
    "razorpay_webhook_secret": WEBHOOK_SECRET,
    "settings": {"currency": "INR", "timezone": "Asia/Kolkata"},
    "is_active": True,
}

TENANT_CREATE_PAYLOAD = {
    "business_name": "Bloom Florists",
    "business_phone": "+919700000000",
    "business_email": "hello@bloomflorists.in",
    "whatsapp": {
        "phone_number_id": "200000000001",
        "business_account_id": "WABA-2",
        "access_token": "EAAG-bloom-access-token",
        "verify_token": "bloom-verify",
        "catalog_id": "CAT-2",
    },
    "razorpay": {
        "key_id": "rzp_test_bloom",
        "key_secret": "bloom_key_secret",
        "webhook_secret": "whsec_bloom",
    },
    "settings": {"welcome_message": "Welcome to Bloom 🌸"},
}

# unit price 2499 paise each, quantities 1 + 2 + 3
THREE_ITEM_ORDER = [
    {"product_retailer_id": "SAREE-RED", "quantity": 1, "item_price": 24.99, "currency": "INR"},
    {"product_retailer_id": "SAREE-BLUE", "quantity": 2, "item_price": 24.99, "currency": "INR"},
    {"product_retailer_id": "DUPATTA-GOLD", "quantity": 3, "item_price": 24.99, "currency": "INR"},
]
THREE_ITEM_TOTAL_MINOR = 2499 * 6

ADDRESS_25_CHARS = "12 MG Road, Bengaluru 560"
ORDER_ID_PATTERN = r"^ORD-[0-9A-Z]+-[0-9A-Z]{4}$"


def create_tenant_row(db, **overrides) -> Tenant:
    data = dict(TENANT_ROW)
    data.update(overrides)
    tenant = Tenant(
        tenant_id=data["tenant_id"],
        business_name=data["business_name"],
        business_phone=data["business_phone"],
        business_email=data["business_email"],
        phone_number_id=data["phone_number_id"],
        business_account_id=data["business_account_id"],
        access_token=encrypt_credential(data["access_token"]),
        verify_token=data["verify_token"],
        catalog_id=data["catalog_id"],
        razorpay_key_id=encrypt_credential(data["razorpay_key_id"]),
        razorpay_key_secret=encrypt_credential(data["razorpay_key_secret"]),
        razorpay_webhook_secret=encrypt_credential(data["razorpay_webhook_secret"]),
        settings=data["settings"],
        is_active=data["is_active"],
    )
    db.add(tenant)
    db.commit()
    return tenant


def tenant_config(**overrides) -> TenantConfig:
    values = {
        "tenant_id": TENANT_ID,
        "business_name": TENANT_ROW["business_name"],
        "business_phone": TENANT_ROW["business_phone"],
        "phone_number_id": PHONE_NUMBER_ID,
        "access_token": TENANT_ROW["access_token"],
        "razorpay_key_id": TENANT_ROW["razorpay_key_id"],
        "razorpay_key_secret": TENANT_ROW["razorpay_key_secret"],
        "razorpay_webhook_secret": WEBHOOK_SECRET,
        "catalog_id": TENANT_ROW["catalog_id"],
        "settings": dict(TENANT_ROW["settings"]),
    }
    values.update(overrides)
    return TenantConfig(**values)


class FakeGeocoder:
    def __init__(self, result: GeocodedAddress | None = None):
        self.result = result
        self.calls = []

    def reverse(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return self.result


def _whatsapp_envelope(message: dict, *, phone_number_id=PHONE_NUMBER_ID, contact_name="Priya") -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"display_phone_number": "919800000000", "phone_number_id": phone_number_id},
                            "contacts": [{"profile": {"name": contact_name}, "wa_id": message["from"]}],
                            "messages": [message],
                        },
                    }
                ],
            }
        ],
    }


def whatsapp_text(text, *, message_id="wamid.text.1", from_number=CUSTOMER_PHONE, **kwargs) -> dict:
    return _whatsapp_envelope(
        {"from": from_number, "id": message_id, "timestamp": "1700000000", "type": "text", "text": {"body": text}},
        **kwargs,
    )


def whatsapp_order(product_items, *, message_id="wamid.order.1", from_number=CUSTOMER_PHONE, **kwargs) -> dict:
    return _whatsapp_envelope(
        {
            "from": from_number,
            "id": message_id,
            "timestamp": "1700000000",
            "type": "order",
            "order": {"catalog_id": "CAT-1", "product_items": product_items, "text": ""},
        },
        **kwargs,
    )


def whatsapp_location(latitude, longitude, *, address=None, name=None, message_id="wamid.loc.1", **kwargs) -> dict:
    location = {"latitude": latitude, "longitude": longitude}
    if address:
        location["address"] = address
    if name:
        location["name"] = name
    return _whatsapp_envelope(
        {"from": CUSTOMER_PHONE, "id": message_id, "timestamp": "1700000000", "type": "location", "location": location},
        **kwargs,
    )


def whatsapp_button(button_id, title="", *, message_id="wamid.button.1", **kwargs) -> dict:
    return _whatsapp_envelope(
        {
            "from": CUSTOMER_PHONE,
            "id": message_id,
            "timestamp": "1700000000",
            "type": "interactive",
            "interactive": {"type": "button_reply", "button_reply": {"id": button_id, "title": title}},
        },
        **kwargs,
    )


def razorpay_link_event(event, link_id, *, payment_id="pay_TEST123", method="upi", reference_id=None) -> dict:
    payments = [{"payment_id": payment_id, "method": method}] if event == "payment_link.paid" else []
    payload = {
        "entity": "event",
        "event": event,
        "payload": {
            "payment_link": {
                "entity": {
                    "id": link_id,
                    "reference_id": reference_id,
                    "status": event.split(".")[-1],
                    "amount": THREE_ITEM_TOTAL_MINOR,
                    "payments": payments,
                }
            }
        },
    }
    if event == "payment_link.paid":
        payload["payload"]["payment"] = {"entity": {"id": payment_id, "method": method, "status": "captured"}}
    return payload


def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": compute_webhook_signature(body, secret),
    }


def whatsapp_sticker(*, message_id="wamid.sticker.1", **kwargs) -> dict:
    return _whatsapp_envelope(
        {"from": CUSTOMER_PHONE, "id": message_id, "timestamp": "1700000000", "type": "sticker", "sticker": {"id": "st-1"}},
        **kwargs,
    )
