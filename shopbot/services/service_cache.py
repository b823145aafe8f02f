from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

from shopbot.core.config import SERVICE_CACHE_TTL_SECONDS
from shopbot.payments.base import PaymentProvider
from shopbot.payments.factory import build_payment_provider
from shopbot.services.tenant_resolver import TenantConfig
from shopbot.whatsapp.service import WhatsAppService, build_whatsapp_service

logger = logging.getLogger(__name__)


@dataclass
class _Handle:
    value: Any
    expires_at: float


class TenantServiceCache:
    """Per-tenant WhatsApp and payment clients, rebuilt after TTL or invalidation."""

    def __init__(
        self,
        *,
        whatsapp_factory: Callable[[TenantConfig], WhatsAppService] = build_whatsapp_service,
        payments_factory: Callable[[TenantConfig], PaymentProvider] = build_payment_provider,
        ttl_seconds: float = SERVICE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factories: dict[str, Callable[[TenantConfig], Any]] = {
            "whatsapp": whatsapp_factory,
            "payments": payments_factory,
        }
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._handles: dict[tuple[str, str], _Handle] = {}
        self._lock = Lock()

    def _get_or_create(self, kind: str, config: TenantConfig) -> Any:
        key = (kind, config.tenant_id)
        now = self._clock()
        handle = self._handles.get(key)
        if handle is not None and handle.expires_at > now:
            return handle.value

        value = self._factories[kind](config)
        with self._lock:
            self._handles[key] = _Handle(value=value, expires_at=now + self.ttl_seconds)
        logger.debug("built %s client for tenant %s", kind, config.tenant_id)
        return value

    def get_whatsapp(self, config: TenantConfig) -> WhatsAppService:
        return self._get_or_create("whatsapp", config)

    def get_payments(self, config: TenantConfig) -> PaymentProvider:
        return self._get_or_create("payments", config)

    def invalidate(self, tenant_id: str) -> None:
        with self._lock:
            for key in [key for key in self._handles if key[1] == tenant_id]:
                self._handles.pop(key, None)
        logger.info("service cache invalidated", extra={"tenant_id": tenant_id})

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, handle in self._handles.items() if handle.expires_at <= now]
            for key in expired:
                self._handles.pop(key, None)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            keys = sorted(f"{kind}:{tenant_id}" for kind, tenant_id in self._handles)
        return {"size": len(keys), "keys": keys, "ttl_seconds": self.ttl_seconds}
