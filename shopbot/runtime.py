from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from shopbot.core.database import SessionLocal
from shopbot.fsm.engine import ConversationEngine
from shopbot.payments.base import PaymentProvider
from shopbot.payments.factory import build_payment_provider
from shopbot.services.address import AddressResolver
from shopbot.services.conversation_locks import ConversationLocks
from shopbot.services.geocoding import NominatimGeocoder
from shopbot.services.inbound import InboundDispatcher
from shopbot.services.orders import PaymentReconciler
from shopbot.services.service_cache import TenantServiceCache
from shopbot.services.tenant_resolver import TenantConfig, TenantResolver
from shopbot.services.tenants import TenantAdminService
from shopbot.whatsapp.service import WhatsAppService, build_whatsapp_service


@dataclass
class Runtime:
    resolver: TenantResolver
    services: TenantServiceCache
    locks: ConversationLocks
    engine: ConversationEngine
    dispatcher: InboundDispatcher
    reconciler: PaymentReconciler
    tenants: TenantAdminService


def build_runtime(
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    whatsapp_factory: Callable[[TenantConfig], WhatsAppService] = build_whatsapp_service,
    payments_factory: Callable[[TenantConfig], PaymentProvider] = build_payment_provider,
    geocoder: NominatimGeocoder | None = None,
    resolver: TenantResolver | None = None,
    receipts_enabled: bool | None = None,
) -> Runtime:
    """Wire the caches and handlers shared by every request of one app instance."""
    resolver = resolver or TenantResolver()
    services = TenantServiceCache(whatsapp_factory=whatsapp_factory, payments_factory=payments_factory)
    locks = ConversationLocks()
    engine = ConversationEngine(address_resolver=AddressResolver(geocoder or NominatimGeocoder()))
    reconciler_kwargs = {} if receipts_enabled is None else {"receipts_enabled": receipts_enabled}
    return Runtime(
        resolver=resolver,
        services=services,
        locks=locks,
        engine=engine,
        dispatcher=InboundDispatcher(
            resolver=resolver,
            services=services,
            engine=engine,
            locks=locks,
            session_factory=session_factory,
        ),
        reconciler=PaymentReconciler(resolver=resolver, services=services, locks=locks, **reconciler_kwargs),
        tenants=TenantAdminService(resolver=resolver, services=services),
    )
