from __future__ import annotations

import logging
import uuid
from threading import Lock
from typing import TYPE_CHECKING, Any, Sequence

from shopbot.whatsapp.base import (
    ReplyButton,
    WhatsAppProvider,
    WhatsAppSendResult,
    buttons_payload,
    catalog_payload,
    safe_json,
)

if TYPE_CHECKING:
    from shopbot.services.tenant_resolver import TenantConfig

logger = logging.getLogger(__name__)

MAX_HISTORY = 500


class MockWhatsAppProvider(WhatsAppProvider):
    """Keeps outbound messages in memory instead of calling Meta."""

    def __init__(self, *, max_history: int = MAX_HISTORY) -> None:
        self.max_history = max_history
        self.sent: list[dict[str, Any]] = []
        self.read_receipts: list[str] = []
        self._lock = Lock()

    def send_text(self, config: "TenantConfig", *, to_phone: str, text: str) -> WhatsAppSendResult:
        return self._record(config, {"type": "text", "to": to_phone, "text": text})

    def send_buttons(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        buttons: Sequence[ReplyButton],
    ) -> WhatsAppSendResult:
        return self._record(
            config,
            {"type": "buttons", "to": to_phone, "text": body, "interactive": buttons_payload(body, buttons)},
        )

    def send_catalog(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        thumbnail_product_id: str | None = None,
    ) -> WhatsAppSendResult:
        return self._record(
            config,
            {"type": "catalog", "to": to_phone, "text": body, "interactive": catalog_payload(body, thumbnail_product_id)},
        )

    def send_document(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        file_path: str,
        filename: str,
        caption: str | None = None,
    ) -> WhatsAppSendResult:
        return self._record(
            config,
            {"type": "document", "to": to_phone, "file_path": file_path, "filename": filename, "text": caption or ""},
        )

    def mark_as_read(self, config: "TenantConfig", *, message_id: str) -> WhatsAppSendResult:
        with self._lock:
            self.read_receipts.append(message_id)
            if len(self.read_receipts) > self.max_history:
                del self.read_receipts[: -self.max_history]
        return WhatsAppSendResult(status="sent", provider_message_id=message_id)

    def messages_to(self, phone: str) -> list[dict[str, Any]]:
        with self._lock:
            return [message for message in self.sent if message["to"] == phone]

    def _record(self, config: "TenantConfig", message: dict[str, Any]) -> WhatsAppSendResult:
        message = {**message, "tenant_id": config.tenant_id if config else None}
        provider_message_id = f"mock-{uuid.uuid4().hex[:10]}"
        with self._lock:
            self.sent.append(message)
            if len(self.sent) > self.max_history:
                del self.sent[: -self.max_history]
        logger.info("WhatsApp mock send %s", safe_json(message))
        return WhatsAppSendResult(status="sent", provider_message_id=provider_message_id)
