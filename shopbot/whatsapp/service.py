from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from shopbot.core.config import IS_DEV, IS_PROD, WHATSAPP_PROVIDER
from shopbot.whatsapp.base import ReplyButton, WhatsAppProvider, WhatsAppSendResult
from shopbot.whatsapp.cloud_provider import CloudWhatsAppProvider
from shopbot.whatsapp.mock_provider import MockWhatsAppProvider

if TYPE_CHECKING:
    from shopbot.services.tenant_resolver import TenantConfig

logger = logging.getLogger(__name__)

_cloud_provider = CloudWhatsAppProvider()
_mock_provider = MockWhatsAppProvider()


class WhatsAppService:
    """Outbound messaging bound to one tenant's WhatsApp number."""

    def __init__(
        self,
        config: "TenantConfig",
        provider: WhatsAppProvider,
        *,
        fallback: WhatsAppProvider | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self._fallback = fallback

    def _deliver(self, method: str, **kwargs) -> WhatsAppSendResult:
        result = getattr(self.provider, method)(self.config, **kwargs)
        if not result.ok and self._fallback is not None:
            logger.warning("WhatsApp Cloud failed, using mock (tenant=%s)", self.config.tenant_id)
            return getattr(self._fallback, method)(self.config, **kwargs)
        return result

    def send_text(self, to_phone: str, text: str) -> WhatsAppSendResult:
        return self._deliver("send_text", to_phone=to_phone, text=text)

    def send_buttons(self, to_phone: str, body: str, buttons: Sequence[ReplyButton]) -> WhatsAppSendResult:
        return self._deliver("send_buttons", to_phone=to_phone, body=body, buttons=buttons)

    def send_catalog(self, to_phone: str, body: str, thumbnail_product_id: str | None = None) -> WhatsAppSendResult:
        return self._deliver(
            "send_catalog",
            to_phone=to_phone,
            body=body,
            thumbnail_product_id=thumbnail_product_id,
        )

    def send_document(
        self,
        to_phone: str,
        file_path: str,
        filename: str,
        caption: str | None = None,
    ) -> WhatsAppSendResult:
        return self._deliver(
            "send_document",
            to_phone=to_phone,
            file_path=file_path,
            filename=filename,
            caption=caption,
        )

    def mark_as_read(self, message_id: str) -> None:
        # read receipts are cosmetic
        result = self.provider.mark_as_read(self.config, message_id=message_id)
        if not result.ok:
            logger.info("mark_as_read failed for %s: %s", message_id, result.error)


def select_provider(config: "TenantConfig") -> WhatsAppProvider:
    if IS_PROD:
        # incomplete credentials surface as failed sends, never as fake ones
        return _cloud_provider
    if WHATSAPP_PROVIDER == "mock":
        return _mock_provider
    if config.access_token and config.phone_number_id:
        return _cloud_provider
    return _mock_provider


def build_whatsapp_service(config: "TenantConfig") -> WhatsAppService:
    provider = select_provider(config)
    fallback = _mock_provider if IS_DEV and provider is _cloud_provider else None
    return WhatsAppService(config, provider, fallback=fallback)
