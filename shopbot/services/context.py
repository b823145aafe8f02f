from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from shopbot.payments.base import PaymentProvider
from shopbot.services.tenant_resolver import TenantConfig
from shopbot.whatsapp.service import WhatsAppService


@dataclass
class TenantContext:
    """Everything a handler needs to act on behalf of one tenant."""

    db: Session
    config: TenantConfig
    whatsapp: WhatsAppService
    payments: PaymentProvider

    @property
    def tenant_id(self) -> str:
        return self.config.tenant_id
