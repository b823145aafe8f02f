import copy

from shopbot.core.crypto import decrypt_credential, is_encrypted
from shopbot.models.tenant import Tenant
from shopbot.routers import tenants as tenants_router
from tests.fixtures_data import PHONE_NUMBER_ID, TENANT_CREATE_PAYLOAD, TENANT_ID

SECRET_VALUES = ("EAAG-bloom-access-token", "bloom_key_secret", "whsec_bloom", "rzp_test_bloom")


def _create(client, payload=None):
    return client.post("/api/tenants", json=payload or TENANT_CREATE_PAYLOAD)


def test_create_tenant_encrypts_credentials(client, db):
    response = _create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["tenant_id"].startswith("tnt_")
    assert body["phone_number_id"] == "200000000001"
    assert body["settings"]["welcome_message"] == "Welcome to Bloom 🌸"
    for secret in SECRET_VALUES:
        assert secret not in response.text

    stored = db.query(Tenant).filter(Tenant.tenant_id == body["tenant_id"]).one()
    assert is_encrypted(stored.access_token)
    assert is_encrypted(stored.razorpay_key_secret)
    assert decrypt_credential(stored.razorpay_webhook_secret) == "whsec_bloom"


def test_duplicate_phone_number_id_is_rejected(client):
    assert _create(client).status_code == 201

    response = _create(client)

    assert response.status_code == 400
    assert "phone_number_id" in response.json()["detail"]


def test_invalid_payload_is_rejected(client):
    payload = copy.deepcopy(TENANT_CREATE_PAYLOAD)
    payload["whatsapp"]["access_token"] = "short"

    assert _create(client, payload).status_code == 422


def test_get_and_list_tenants(client):
    created = _create(client).json()

    fetched = client.get(f"/api/tenants/{created['tenant_id']}")
    listing = client.get("/api/tenants")

    assert fetched.status_code == 200
    assert fetched.json()["business_name"] == "Bloom Florists"
    assert listing.json()["total"] == 2
    assert {item["tenant_id"] for item in listing.json()["items"]} == {TENANT_ID, created["tenant_id"]}
    assert client.get("/api/tenants/tnt_missing").status_code == 404


def test_update_invalidates_cached_config(client, db, runtime):
    before = runtime.resolver.resolve_by_tenant_id(db, TENANT_ID)
    assert before.business_name == "Acme Sarees"

    response = client.put(
        f"/api/tenants/{TENANT_ID}",
        json={"business_name": "Acme Silks", "razorpay": {"webhook_secret": "whsec_rotated"}},
    )

    assert response.status_code == 200
    after = runtime.resolver.resolve_by_phone_number_id(db, PHONE_NUMBER_ID)
    assert after.business_name == "Acme Silks"
    assert after.razorpay_webhook_secret == "whsec_rotated"


def test_deactivated_tenant_stops_resolving(client, db, runtime):
    assert runtime.resolver.resolve_by_tenant_id(db, TENANT_ID) is not None

    response = client.delete(f"/api/tenants/{TENANT_ID}")

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert runtime.resolver.resolve_by_tenant_id(db, TENANT_ID) is None

    client.post(f"/api/tenants/{TENANT_ID}/activate")
    assert runtime.resolver.resolve_by_tenant_id(db, TENANT_ID) is not None


def test_admin_token_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(tenants_router.app_config, "ADMIN_API_TOKEN", "s3cret")

    assert client.get("/api/tenants").status_code == 401
    assert client.get("/api/tenants", headers={"X-Admin-Token": "s3cret"}).status_code == 200


def test_production_without_admin_token_is_unavailable(client, monkeypatch):
    monkeypatch.setattr(tenants_router.app_config, "ADMIN_API_TOKEN", "")
    monkeypatch.setattr(tenants_router.app_config, "IS_PROD", True)

    assert client.get("/api/tenants").status_code == 503
