"""Tenant lookup for inbound events with a bounded-staleness cache.

Entries are stored under both ``phone:<phone_number_id>`` and
``tenant:<tenant_id>`` so the webhook path and the reconciliation path warm
each other. Updates must call ``invalidate_cache``; nothing else evicts an
entry before its TTL.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable

from sqlalchemy.orm import Session

from shopbot.core.config import DEFAULT_CURRENCY, TENANT_CACHE_TTL_SECONDS
from shopbot.core.crypto import decrypt_credential
from shopbot.core.errors import ConfigurationError
from shopbot.models.tenant import Tenant

logger = logging.getLogger(__name__)

SMS_SECRET_FIELDS = ("auth_key", "auth_token", "api_key")


@dataclass(frozen=True)
class TenantConfig:
    tenant_id: str
    business_name: str
    business_phone: str
    phone_number_id: str
    access_token: str
    razorpay_key_id: str
    razorpay_key_secret: str
    business_email: str | None = None
    business_account_id: str | None = None
    verify_token: str | None = None
    catalog_id: str | None = None
    api_version: str = "v18.0"
    razorpay_webhook_secret: str | None = None
    sms: dict[str, Any] | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True

    @property
    def whatsapp_api_url(self) -> str:
        return f"https://graph.facebook.com/{self.api_version}/{self.phone_number_id}"

    @property
    def welcome_message(self) -> str | None:
        return (self.settings or {}).get("welcome_message") or None

    @property
    def currency(self) -> str:
        return (self.settings or {}).get("currency") or DEFAULT_CURRENCY


@dataclass
class _CacheEntry:
    config: TenantConfig
    expires_at: float


def _decrypt_field(tenant: Tenant, name: str, value: str | None) -> str | None:
    if not value:
        return None
    try:
        return decrypt_credential(value)
    except ConfigurationError as exc:
        raise ConfigurationError(f"tenant {tenant.tenant_id}: cannot decrypt {name}") from exc


def _decrypt_sms(tenant: Tenant) -> dict[str, Any] | None:
    if not tenant.sms_config:
        return None
    sms = dict(tenant.sms_config)
    for key in SMS_SECRET_FIELDS:
        if sms.get(key):
            sms[key] = _decrypt_field(tenant, f"sms.{key}", sms[key])
    return sms


def build_tenant_config(tenant: Tenant) -> TenantConfig:
    return TenantConfig(
        tenant_id=tenant.tenant_id,
        business_name=tenant.business_name,
        business_phone=tenant.business_phone,
        business_email=tenant.business_email,
        phone_number_id=tenant.phone_number_id,
        business_account_id=tenant.business_account_id,
        access_token=_decrypt_field(tenant, "access_token", tenant.access_token) or "",
        verify_token=tenant.verify_token,
        catalog_id=tenant.catalog_id,
        api_version=tenant.api_version or "v18.0",
        razorpay_key_id=_decrypt_field(tenant, "razorpay_key_id", tenant.razorpay_key_id) or "",
        razorpay_key_secret=_decrypt_field(tenant, "razorpay_key_secret", tenant.razorpay_key_secret) or "",
        razorpay_webhook_secret=_decrypt_field(tenant, "razorpay_webhook_secret", tenant.razorpay_webhook_secret),
        sms=_decrypt_sms(tenant),
        settings=dict(tenant.settings or {}),
        is_active=bool(tenant.is_active),
    )


class TenantResolver:
    def __init__(
        self,
        *,
        ttl_seconds: float = TENANT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._lock = Lock()

    @staticmethod
    def _phone_key(phone_number_id: str) -> str:
        return f"phone:{phone_number_id}"

    @staticmethod
    def _tenant_key(tenant_id: str) -> str:
        return f"tenant:{tenant_id}"

    def _get_cached(self, key: str) -> TenantConfig | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            with self._lock:
                self._cache.pop(key, None)
            return None
        return entry.config

    def _store(self, config: TenantConfig) -> None:
        entry = _CacheEntry(config=config, expires_at=self._clock() + self.ttl_seconds)
        with self._lock:
            self._cache[self._phone_key(config.phone_number_id)] = entry
            self._cache[self._tenant_key(config.tenant_id)] = entry

    def _load(self, db: Session, *criteria) -> TenantConfig | None:
        tenant = db.query(Tenant).filter(*criteria, Tenant.is_active.is_(True)).first()
        if tenant is None:
            return None
        try:
            config = build_tenant_config(tenant)
        except ConfigurationError:
            logger.exception("tenant credentials unusable", extra={"tenant_id": tenant.tenant_id})
            return None
        self._store(config)
        return config

    def resolve_by_phone_number_id(self, db: Session, phone_number_id: str | None) -> TenantConfig | None:
        if not phone_number_id:
            return None
        cached = self._get_cached(self._phone_key(phone_number_id))
        if cached is not None:
            return cached
        config = self._load(db, Tenant.phone_number_id == phone_number_id)
        if config is None:
            logger.warning("no active tenant for phone_number_id=%s", phone_number_id)
        return config

    def resolve_by_tenant_id(self, db: Session, tenant_id: str | None) -> TenantConfig | None:
        if not tenant_id:
            return None
        cached = self._get_cached(self._tenant_key(tenant_id))
        if cached is not None:
            return cached
        config = self._load(db, Tenant.tenant_id == tenant_id)
        if config is None:
            logger.warning("no active tenant for tenant_id=%s", tenant_id)
        return config

    def invalidate_cache(self, tenant_id: str, phone_number_id: str | None = None) -> None:
        with self._lock:
            entry = self._cache.pop(self._tenant_key(tenant_id), None)
            phone_keys = set()
            if phone_number_id:
                phone_keys.add(self._phone_key(phone_number_id))
            if entry is not None:
                phone_keys.add(self._phone_key(entry.config.phone_number_id))
            # the phone number may have changed since the entry was stored
            for key, cached in self._cache.items():
                if key.startswith("phone:") and cached.config.tenant_id == tenant_id:
                    phone_keys.add(key)
            for key in phone_keys:
                self._cache.pop(key, None)
        logger.info("tenant cache invalidated", extra={"tenant_id": tenant_id})

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        with self._lock:
            keys = sorted(self._cache.keys())
        return {"size": len(keys), "keys": keys, "ttl_seconds": self.ttl_seconds}
