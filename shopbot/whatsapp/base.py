from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Sequence

if TYPE_CHECKING:
    from shopbot.services.tenant_resolver import TenantConfig

MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20


@dataclass
class WhatsAppSendResult:
    status: str
    provider_message_id: str | None = None
    error: str | None = None
    response_payload: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


@dataclass(frozen=True)
class ReplyButton:
    id: str
    title: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": "reply", "reply": {"id": self.id, "title": self.title[:MAX_BUTTON_TITLE]}}


class WhatsAppProvider(Protocol):
    def send_text(self, config: "TenantConfig", *, to_phone: str, text: str) -> WhatsAppSendResult:
        ...

    def send_buttons(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        buttons: Sequence[ReplyButton],
    ) -> WhatsAppSendResult:
        ...

    def send_catalog(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        thumbnail_product_id: str | None = None,
    ) -> WhatsAppSendResult:
        ...

    def send_document(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        file_path: str,
        filename: str,
        caption: str | None = None,
    ) -> WhatsAppSendResult:
        ...

    def mark_as_read(self, config: "TenantConfig", *, message_id: str) -> WhatsAppSendResult:
        ...


def buttons_payload(body: str, buttons: Sequence[ReplyButton]) -> dict[str, Any]:
    return {
        "type": "button",
        "body": {"text": body},
        "action": {"buttons": [button.to_payload() for button in list(buttons)[:MAX_BUTTONS]]},
    }


def catalog_payload(body: str, thumbnail_product_id: str | None = None) -> dict[str, Any]:
    action: dict[str, Any] = {"name": "catalog_message"}
    if thumbnail_product_id:
        action["parameters"] = {"thumbnail_product_retailer_id": thumbnail_product_id}
    return {"type": "catalog_message", "body": {"text": body}, "action": action}


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return "{}"
