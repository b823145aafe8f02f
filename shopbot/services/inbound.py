from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopbot.core.database import SessionLocal
from shopbot.core.request_context import bind_log_context
from shopbot.fsm.engine import ConversationEngine, InboundMessage
from shopbot.models.processed_message import ProcessedMessage
from shopbot.services.context import TenantContext
from shopbot.services.conversation_locks import ConversationLocks
from shopbot.services.service_cache import TenantServiceCache
from shopbot.services.tenant_resolver import TenantConfig, TenantResolver
from shopbot.whatsapp.cloud_provider import parse_cloud_webhook

logger = logging.getLogger(__name__)


def mark_processed(db: Session, tenant_id: str, message_id: str) -> bool:
    """Record ``message_id``; False when it was already handled."""
    if db.get(ProcessedMessage, message_id) is not None:
        return False
    db.add(ProcessedMessage(message_id=message_id, tenant_id=tenant_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


class InboundDispatcher:
    """Routes parsed WhatsApp messages to the owning tenant's conversation."""

    def __init__(
        self,
        *,
        resolver: TenantResolver,
        services: TenantServiceCache,
        engine: ConversationEngine,
        locks: ConversationLocks,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.resolver = resolver
        self.services = services
        self.engine = engine
        self.locks = locks
        self.session_factory = session_factory

    def process_payload(self, payload: dict[str, Any]) -> dict[str, int]:
        counts: dict[str, int] = {}
        db = self.session_factory()
        try:
            for parsed in parse_cloud_webhook(payload):
                outcome = self.process_message(db, parsed)
                counts[outcome] = counts.get(outcome, 0) + 1
        finally:
            db.close()
        return counts

    def process_message(self, db: Session, parsed: dict[str, Any]) -> str:
        config = self.resolver.resolve_by_phone_number_id(db, parsed.get("phone_number_id"))
        if config is None:
            logger.warning("dropping message for unknown tenant phone_number_id=%s", parsed.get("phone_number_id"))
            return "unknown_tenant"

        with bind_log_context(tenant_id=config.tenant_id):
            return self._handle_for_tenant(db, config, parsed)

    def _handle_for_tenant(self, db: Session, config: TenantConfig, parsed: dict[str, Any]) -> str:
        message_id = parsed.get("message_id")
        if message_id and not mark_processed(db, config.tenant_id, message_id):
            logger.info("duplicate WhatsApp message %s", message_id)
            return "duplicate"

        message = InboundMessage.from_parsed(parsed)
        ctx = TenantContext(
            db=db,
            config=config,
            whatsapp=self.services.get_whatsapp(config),
            payments=self.services.get_payments(config),
        )
        logger.info("WhatsApp received kind=%s", message.kind.value, extra={"phone": message.phone})
        with self.locks.hold(config.tenant_id, message.phone):
            self.engine.handle(ctx, message)
        return "processed"
