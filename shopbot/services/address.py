"""Delivery address capture while a conversation is AWAITING_ADDRESS.

Customers either type a full address or share a location. A location
usually resolves to street/area level only, so it is parked as a pending
address and the customer's next message supplies the house/flat detail,
which is prefixed to it to form the final address.
"""
from __future__ import annotations

import logging
import re
from typing import Any

from shopbot.models.conversation import Conversation
from shopbot.models.order import Order
from shopbot.services import message_templates
from shopbot.services.context import TenantContext
from shopbot.services.geocoding import NominatimGeocoder
from shopbot.services.orders import initiate_checkout
from shopbot.whatsapp.base import ReplyButton

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 20
DETAILED_ADDRESS_LENGTH = 30
_ALNUM = re.compile(r"[A-Za-z0-9]")
_DIGIT = re.compile(r"\d")

REJECT_ADDRESS_BUTTON = ReplyButton(id="reject_address", title="✏️ Type full address")


def is_valid_manual_address(text: str | None) -> bool:
    cleaned = (text or "").strip()
    return len(cleaned) >= MIN_ADDRESS_LENGTH and bool(_ALNUM.search(cleaned))


def looks_detailed(text: str | None) -> bool:
    cleaned = (text or "").strip()
    if not cleaned:
        return False
    signals = [
        "," in cleaned,
        len(cleaned) > DETAILED_ADDRESS_LENGTH,
        bool(_DIGIT.search(cleaned)),
    ]
    return sum(signals) >= 2


def merge_with_pending(detail: str, pending_text: str) -> str:
    return f"{detail.strip()}, {pending_text.strip()}"


class AddressResolver:
    def __init__(self, geocoder: NominatimGeocoder) -> None:
        self.geocoder = geocoder

    def handle_text(self, ctx: TenantContext, conversation: Conversation, text: str) -> Order | None:
        pending = conversation.pending_address
        if pending and pending.get("text"):
            # area-level part was already confirmed, so no length check here
            address = merge_with_pending(text, pending["text"])
            # initiate_checkout clears pending_address once the link exists
            return initiate_checkout(ctx, conversation, address, pending=pending)

        if not is_valid_manual_address(text):
            ctx.whatsapp.send_text(conversation.phone_number, message_templates.render("address_invalid"))
            return None
        return initiate_checkout(ctx, conversation, text.strip())

    def extract_from_location(self, location: dict[str, Any]) -> tuple[str, str] | None:
        """Return ``(address, confidence)`` for a shared location, or ``None``."""
        provided = (location.get("address") or location.get("name") or "").strip()
        if looks_detailed(provided):
            return provided, "provided"

        latitude = location.get("latitude")
        longitude = location.get("longitude")
        if latitude is not None and longitude is not None:
            geocoded = self.geocoder.reverse(float(latitude), float(longitude))
            if geocoded is not None:
                if geocoded.confidence == "low":
                    logger.warning(
                        "low confidence geocoding lat=%s lon=%s address=%s",
                        latitude,
                        longitude,
                        geocoded.formatted_address,
                    )
                return geocoded.formatted_address, geocoded.confidence

        if provided:
            return provided, "low"
        return None

    def handle_location(self, ctx: TenantContext, conversation: Conversation, location: dict[str, Any]) -> None:
        phone = conversation.phone_number
        extracted = self.extract_from_location(location)
        if extracted is None:
            ctx.whatsapp.send_text(phone, message_templates.render("address_location_failed"))
            return

        address, confidence = extracted
        conversation.pending_address = {
            "text": address,
            "source": "location",
            "location": {"latitude": location.get("latitude"), "longitude": location.get("longitude")},
        }
        ctx.db.commit()
        logger.info("pending address stored confidence=%s", confidence, extra={"tenant_id": ctx.tenant_id, "phone": phone})
        ctx.whatsapp.send_buttons(
            phone,
            message_templates.render("address_ask_detail", address=address),
            [REJECT_ADDRESS_BUTTON],
        )

    def reject_pending(self, ctx: TenantContext, conversation: Conversation) -> None:
        conversation.pending_address = None
        ctx.db.commit()
        ctx.whatsapp.send_text(conversation.phone_number, message_templates.render("address_manual"))
