from __future__ import annotations

import json
import logging
import os
import time
from typing import TYPE_CHECKING, Any, Sequence

import httpx

from shopbot.core.logging_setup import redact
from shopbot.services.tenant_backoff import TenantBackoff
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
_backoff = TenantBackoff()


def _parse_message(msg: dict[str, Any]) -> dict[str, Any]:
    msg_type = msg.get("type") or "text"
    parsed: dict[str, Any] = {
        "message_type": msg_type,
        "text": "",
        "order": None,
        "interactive": None,
        "location": None,
    }
    if msg_type == "text":
        parsed["text"] = (((msg.get("text") or {}).get("body")) or "").strip()
    elif msg_type == "order":
        order = msg.get("order") or {}
        parsed["order"] = {
            "catalog_id": order.get("catalog_id"),
            "product_items": order.get("product_items") or [],
            "text": order.get("text"),
        }
    elif msg_type == "interactive":
        interactive = msg.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        parsed["interactive"] = {"id": reply.get("id"), "title": reply.get("title")}
    elif msg_type == "button":
        # quick-reply buttons on template messages
        button = msg.get("button") or {}
        parsed["interactive"] = {"id": button.get("payload"), "title": button.get("text")}
    elif msg_type == "location":
        location = msg.get("location") or {}
        parsed["location"] = {
            "latitude": location.get("latitude"),
            "longitude": location.get("longitude"),
            "name": location.get("name"),
            "address": location.get("address"),
        }
    return parsed


def parse_cloud_webhook(payload: dict[str, Any]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            if change.get("field", "messages") != "messages":
                continue
            value = change.get("value") or {}
            metadata = value.get("metadata") or {}
            phone_number_id = metadata.get("phone_number_id")
            display_phone_number = metadata.get("display_phone_number")

            contacts = value.get("contacts") or []
            contact_name = None
            if contacts:
                contact_name = ((contacts[0].get("profile") or {}).get("name")) or None

            for msg in value.get("messages", []) or []:
                message_id = msg.get("id")
                from_number = msg.get("from")
                if not message_id or not from_number:
                    continue
                messages.append(
                    {
                        "message_id": message_id,
                        "from_number": from_number,
                        "phone_number_id": phone_number_id,
                        "display_phone_number": display_phone_number,
                        "contact_name": contact_name,
                        **_parse_message(msg),
                    }
                )
    return messages


class CloudWhatsAppProvider(WhatsAppProvider):
    MAX_RETRIES = 3
    INTEGRATION_NAME = "whatsapp_cloud"

    def __init__(self, *, timeout: float = 20.0, backoff: TenantBackoff | None = None) -> None:
        self.timeout = timeout
        self._backoff = backoff or _backoff

    def send_text(self, config: "TenantConfig", *, to_phone: str, text: str) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        return self._send(config, payload=payload)

    def send_buttons(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        buttons: Sequence[ReplyButton],
    ) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "interactive",
            "interactive": buttons_payload(body, buttons),
        }
        return self._send(config, payload=payload)

    def send_catalog(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        body: str,
        thumbnail_product_id: str | None = None,
    ) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "interactive",
            "interactive": catalog_payload(body, thumbnail_product_id),
        }
        return self._send(config, payload=payload)

    def send_document(
        self,
        config: "TenantConfig",
        *,
        to_phone: str,
        file_path: str,
        filename: str,
        caption: str | None = None,
    ) -> WhatsAppSendResult:
        upload = self._upload_media(config, file_path=file_path, filename=filename)
        if not upload.ok:
            return upload
        document: dict[str, Any] = {"id": upload.provider_message_id, "filename": filename}
        if caption:
            document["caption"] = caption
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "document",
            "document": document,
        }
        return self._send(config, payload=payload)

    def mark_as_read(self, config: "TenantConfig", *, message_id: str) -> WhatsAppSendResult:
        payload = {"messaging_product": "whatsapp", "status": "read", "message_id": message_id}
        return self._send(config, payload=payload, retries=1)

    def _headers(self, config: "TenantConfig") -> dict[str, str]:
        return {"Authorization": f"Bearer {config.access_token}"}

    def _upload_media(self, config: "TenantConfig", *, file_path: str, filename: str) -> WhatsAppSendResult:
        if not os.path.exists(file_path):
            return WhatsAppSendResult(status="failed", error=f"file not found: {file_path}")
        url = f"{config.whatsapp_api_url}/media"
        try:
            with open(file_path, "rb") as fh, httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    headers=self._headers(config),
                    data={"messaging_product": "whatsapp", "type": "application/pdf"},
                    files={"file": (filename, fh, "application/pdf")},
                )
        except httpx.HTTPError as exc:
            logger.warning("WhatsApp media upload failed: %s", exc, extra={"tenant_id": config.tenant_id})
            return WhatsAppSendResult(status="failed", error=str(exc))

        if not 200 <= response.status_code < 300:
            return WhatsAppSendResult(status="failed", error=f"WhatsApp media {response.status_code}: {response.text}")
        media_id = (response.json() or {}).get("id")
        return WhatsAppSendResult(status="sent", provider_message_id=media_id)

    def _send(self, config: "TenantConfig", *, payload: dict[str, Any], retries: int | None = None) -> WhatsAppSendResult:
        if not config or not config.access_token or not config.phone_number_id:
            return WhatsAppSendResult(status="failed", error="incomplete WhatsApp Cloud credentials")

        url = f"{config.whatsapp_api_url}/messages"
        headers = {**self._headers(config), "Content-Type": "application/json"}
        tenant_id = config.tenant_id
        max_attempts = retries or self.MAX_RETRIES
        last_error: str | None = None

        for attempt in range(1, max_attempts + 1):
            decision = self._backoff.before_request(tenant_id=tenant_id, integration=self.INTEGRATION_NAME)
            if decision.delay_seconds > 0:
                logger.warning(
                    "tenant integration backoff activated",
                    extra={
                        "tenant_id": tenant_id,
                        "integration": self.INTEGRATION_NAME,
                        "delay_seconds": decision.delay_seconds,
                        "consecutive_failures": decision.consecutive_failures,
                    },
                )
                time.sleep(decision.delay_seconds)

            try:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, headers=headers, json=payload)

                body_text = response.text
                if 200 <= response.status_code < 300:
                    self._backoff.register_success(tenant_id=tenant_id, integration=self.INTEGRATION_NAME)
                    provider_id = None
                    try:
                        data = response.json()
                        provider_id = ((data.get("messages") or [{}])[0].get("id"))
                    except json.JSONDecodeError:
                        data = {"raw": body_text}
                    logger.debug("WhatsApp sent %s", redact(safe_json(payload)))
                    return WhatsAppSendResult(status="sent", provider_message_id=provider_id, response_payload=data)

                last_error = f"WhatsApp error {response.status_code}: {body_text}"
                if 400 <= response.status_code < 500 and response.status_code != 429:
                    # client errors will not succeed on retry
                    self._register_failure(tenant_id)
                    break
            except httpx.HTTPError as exc:
                last_error = str(exc)

            self._register_failure(tenant_id)
            if attempt >= max_attempts:
                break

        logger.error(
            "WhatsApp send failed: %s payload=%s",
            last_error,
            redact(safe_json(payload)),
            extra={"tenant_id": tenant_id},
        )
        return WhatsAppSendResult(status="failed", error=last_error)

    def _register_failure(self, tenant_id: str) -> None:
        failures = self._backoff.register_failure(tenant_id=tenant_id, integration=self.INTEGRATION_NAME)
        if failures == self._backoff.threshold:
            logger.warning(
                "tenant integration failure threshold reached",
                extra={
                    "tenant_id": tenant_id,
                    "integration": self.INTEGRATION_NAME,
                    "consecutive_failures": failures,
                },
            )
