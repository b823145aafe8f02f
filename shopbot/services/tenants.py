from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy.orm import Session

from shopbot.core.crypto import encrypt_credential
from shopbot.core.errors import NotFoundError, ValidationError
from shopbot.models.tenant import Tenant
from shopbot.schemas.tenants import SmsCredentials, TenantCreate, TenantResponse, TenantUpdate
from shopbot.services.service_cache import TenantServiceCache
from shopbot.services.tenant_resolver import SMS_SECRET_FIELDS, TenantResolver

logger = logging.getLogger(__name__)

_TENANT_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_tenant_id() -> str:
    return "tnt_" + "".join(secrets.choice(_TENANT_ID_ALPHABET) for _ in range(12))


def _encrypt_optional(value: str | None) -> str | None:
    return encrypt_credential(value) if value else None


def _encrypt_sms(sms: SmsCredentials | None) -> dict | None:
    if sms is None or sms.provider == "none":
        return None
    data = sms.model_dump(exclude_none=True)
    for key in SMS_SECRET_FIELDS:
        if data.get(key):
            data[key] = encrypt_credential(data[key])
    return data


def to_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        tenant_id=tenant.tenant_id,
        business_name=tenant.business_name,
        business_phone=tenant.business_phone,
        business_email=tenant.business_email,
        phone_number_id=tenant.phone_number_id,
        business_account_id=tenant.business_account_id,
        catalog_id=tenant.catalog_id,
        api_version=tenant.api_version,
        sms_provider=(tenant.sms_config or {}).get("provider"),
        settings=dict(tenant.settings or {}),
        is_active=bool(tenant.is_active),
        created_at=tenant.created_at,
        updated_at=tenant.updated_at,
    )


def _phone_number_taken(db: Session, phone_number_id: str, exclude_tenant_id: str | None = None) -> bool:
    query = db.query(Tenant.id).filter(Tenant.phone_number_id == phone_number_id)
    if exclude_tenant_id:
        query = query.filter(Tenant.tenant_id != exclude_tenant_id)
    return query.first() is not None


class TenantAdminService:
    """Tenant provisioning; every write drops the tenant's cached config and clients."""

    def __init__(self, *, resolver: TenantResolver, services: TenantServiceCache) -> None:
        self.resolver = resolver
        self.services = services

    def _invalidate(self, tenant: Tenant, previous_phone_number_id: str | None = None) -> None:
        self.resolver.invalidate_cache(tenant.tenant_id, previous_phone_number_id or tenant.phone_number_id)
        self.services.invalidate(tenant.tenant_id)

    def get(self, db: Session, tenant_id: str) -> Tenant:
        tenant = db.query(Tenant).filter(Tenant.tenant_id == tenant_id).first()
        if tenant is None:
            raise NotFoundError(f"tenant {tenant_id} not found")
        return tenant

    def list_tenants(self, db: Session, *, limit: int = 50, skip: int = 0, is_active: bool | None = None) -> tuple[list[Tenant], int]:
        query = db.query(Tenant)
        if is_active is not None:
            query = query.filter(Tenant.is_active.is_(is_active))
        total = query.count()
        tenants = query.order_by(Tenant.created_at.desc(), Tenant.id.desc()).offset(skip).limit(limit).all()
        return tenants, total

    def create(self, db: Session, payload: TenantCreate) -> Tenant:
        if _phone_number_taken(db, payload.whatsapp.phone_number_id):
            raise ValidationError("phone_number_id already registered")

        tenant = Tenant(
            tenant_id=generate_tenant_id(),
            business_name=payload.business_name.strip(),
            business_phone=payload.business_phone.strip(),
            business_email=payload.business_email,
            phone_number_id=payload.whatsapp.phone_number_id,
            business_account_id=payload.whatsapp.business_account_id,
            access_token=encrypt_credential(payload.whatsapp.access_token),
            verify_token=payload.whatsapp.verify_token,
            catalog_id=payload.whatsapp.catalog_id,
            api_version=payload.whatsapp.api_version,
            razorpay_key_id=encrypt_credential(payload.razorpay.key_id),
            razorpay_key_secret=encrypt_credential(payload.razorpay.key_secret),
            razorpay_webhook_secret=_encrypt_optional(payload.razorpay.webhook_secret),
            sms_config=_encrypt_sms(payload.sms),
            settings=payload.settings.model_dump(),
            is_active=True,
        )
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        logger.info("tenant created", extra={"tenant_id": tenant.tenant_id})
        return tenant

    def update(self, db: Session, tenant_id: str, payload: TenantUpdate) -> Tenant:
        tenant = self.get(db, tenant_id)
        previous_phone_number_id = tenant.phone_number_id

        for field in ("business_name", "business_phone", "business_email"):
            value = getattr(payload, field)
            if value is not None:
                setattr(tenant, field, value)

        if payload.whatsapp is not None:
            whatsapp = payload.whatsapp
            if whatsapp.phone_number_id and whatsapp.phone_number_id != tenant.phone_number_id:
                if _phone_number_taken(db, whatsapp.phone_number_id, exclude_tenant_id=tenant.tenant_id):
                    raise ValidationError("phone_number_id already registered")
                tenant.phone_number_id = whatsapp.phone_number_id
            if whatsapp.access_token:
                tenant.access_token = encrypt_credential(whatsapp.access_token)
            for field in ("business_account_id", "verify_token", "catalog_id", "api_version"):
                value = getattr(whatsapp, field)
                if value is not None:
                    setattr(tenant, field, value)

        if payload.razorpay is not None:
            if payload.razorpay.key_id:
                tenant.razorpay_key_id = encrypt_credential(payload.razorpay.key_id)
            if payload.razorpay.key_secret:
                tenant.razorpay_key_secret = encrypt_credential(payload.razorpay.key_secret)
            if payload.razorpay.webhook_secret:
                tenant.razorpay_webhook_secret = encrypt_credential(payload.razorpay.webhook_secret)

        if payload.sms is not None:
            tenant.sms_config = _encrypt_sms(payload.sms)

        if payload.settings is not None:
            settings = dict(tenant.settings or {})
            settings.update(payload.settings.model_dump(exclude_none=True))
            tenant.settings = settings

        db.commit()
        db.refresh(tenant)
        self._invalidate(tenant, previous_phone_number_id)
        logger.info("tenant updated", extra={"tenant_id": tenant.tenant_id})
        return tenant

    def set_active(self, db: Session, tenant_id: str, active: bool) -> Tenant:
        tenant = self.get(db, tenant_id)
        tenant.is_active = active
        db.commit()
        db.refresh(tenant)
        self._invalidate(tenant)
        logger.info("tenant %s", "activated" if active else "deactivated", extra={"tenant_id": tenant.tenant_id})
        return tenant
