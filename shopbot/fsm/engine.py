from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from shopbot.core.errors import EmptyCartError, ValidationError
from shopbot.fsm.states import (
    BUTTON_HELP,
    BUTTON_REJECT_ADDRESS,
    BUTTON_RESTART,
    BUTTON_VIEW_CATALOG,
    ConversationState,
    EventKind,
    asks_for_catalog,
    coerce_state,
    global_command,
    resolve_action,
)
from shopbot.models.conversation import Conversation
from shopbot.services import message_templates
from shopbot.services.address import AddressResolver
from shopbot.services.cart import build_cart
from shopbot.services.context import TenantContext
from shopbot.services.conversations import (
    clear_checkout,
    get_or_create_conversation,
    reset_conversation,
    utcnow,
)
from shopbot.services.orders import cancel_open_order
from shopbot.whatsapp.base import ReplyButton

logger = logging.getLogger(__name__)

VIEW_CATALOG_BUTTON = ReplyButton(id=BUTTON_VIEW_CATALOG, title="🛍️ View Collection")
SHOP_AGAIN_BUTTON = ReplyButton(id=BUTTON_VIEW_CATALOG, title="🛍️ Shop Again")
RESTART_BUTTON = ReplyButton(id=BUTTON_RESTART, title="🔄 Start Over")

_MESSAGE_KINDS = {
    "text": EventKind.TEXT,
    "order": EventKind.CATALOG_ORDER,
    "interactive": EventKind.INTERACTIVE_REPLY,
    "button": EventKind.INTERACTIVE_REPLY,
    "location": EventKind.LOCATION_SHARE,
}


@dataclass
class InboundMessage:
    kind: EventKind
    phone: str
    message_id: str | None = None
    text: str = ""
    contact_name: str | None = None
    catalog_id: str | None = None
    product_items: list[dict[str, Any]] = field(default_factory=list)
    button_id: str | None = None
    location: dict[str, Any] | None = None

    @classmethod
    def from_parsed(cls, parsed: dict[str, Any]) -> "InboundMessage":
        kind = _MESSAGE_KINDS.get(parsed.get("message_type") or "", EventKind.UNSUPPORTED)
        order = parsed.get("order") or {}
        interactive = parsed.get("interactive") or {}
        return cls(
            kind=kind,
            phone=parsed["from_number"],
            message_id=parsed.get("message_id"),
            text=parsed.get("text") or "",
            contact_name=parsed.get("contact_name"),
            catalog_id=order.get("catalog_id"),
            product_items=list(order.get("product_items") or []),
            button_id=interactive.get("id"),
            location=parsed.get("location"),
        )


class ConversationEngine:
    """Runs one inbound event against a customer's conversation."""

    def __init__(self, *, address_resolver: AddressResolver) -> None:
        self.address_resolver = address_resolver

    def handle(self, ctx: TenantContext, message: InboundMessage) -> Conversation:
        conversation = get_or_create_conversation(ctx.db, ctx.tenant_id, message.phone, message.contact_name)
        conversation.last_message_at = utcnow()
        if message.message_id:
            ctx.whatsapp.mark_as_read(message.message_id)

        try:
            self.dispatch(ctx, conversation, message)
        except EmptyCartError:
            ctx.db.rollback()
            reset_conversation(conversation)
            ctx.db.commit()
            ctx.whatsapp.send_text(message.phone, message_templates.render("empty_cart"))
        except Exception:
            logger.exception(
                "conversation processing failed",
                extra={"tenant_id": ctx.tenant_id, "phone": message.phone},
            )
            ctx.db.rollback()
            ctx.whatsapp.send_text(message.phone, message_templates.render("error"))
        return conversation

    def dispatch(self, ctx: TenantContext, conversation: Conversation, message: InboundMessage) -> None:
        if message.kind == EventKind.TEXT:
            command = global_command(message.text)
            if command is not None:
                self._run_command(ctx, conversation, command)
                ctx.db.commit()
                return

        state = coerce_state(conversation.state)
        resolved = resolve_action(state, message.kind)
        if resolved is None:
            logger.info(
                "no transition for state=%s kind=%s",
                state.value,
                message.kind.value,
                extra={"tenant_id": ctx.tenant_id, "phone": message.phone},
            )
            ctx.db.commit()
            return

        action, _ = resolved
        handler = getattr(self, f"_on_{action.value}")
        handler(ctx, conversation, message)
        ctx.db.commit()

    def _set_state(self, conversation: Conversation, state: ConversationState) -> None:
        if conversation.state != state.value:
            logger.info(
                "conversation %s -> %s",
                conversation.state,
                state.value,
                extra={"tenant_id": conversation.tenant_id, "phone": conversation.phone_number},
            )
        conversation.state = state.value

    def _send_catalog(self, ctx: TenantContext, phone: str) -> None:
        ctx.whatsapp.send_catalog(phone, message_templates.render("catalog"))

    def _greet(self, ctx: TenantContext, phone: str) -> None:
        body = ctx.config.welcome_message or message_templates.render(
            "greeting", business_name=ctx.config.business_name
        )
        ctx.whatsapp.send_buttons(phone, body, [VIEW_CATALOG_BUTTON])

    def _run_command(self, ctx: TenantContext, conversation: Conversation, command: str) -> None:
        phone = conversation.phone_number
        if command == BUTTON_RESTART:
            reset_conversation(conversation, ConversationState.BROWSING)
            ctx.whatsapp.send_text(phone, message_templates.render("restarted"))
            self._greet(ctx, phone)
        elif command == BUTTON_HELP:
            ctx.whatsapp.send_buttons(phone, message_templates.render("help"), [VIEW_CATALOG_BUTTON, RESTART_BUTTON])
        elif command == "cancel":
            if coerce_state(conversation.state) != ConversationState.CANCELLED:
                cancel_open_order(ctx, conversation)
                reset_conversation(conversation, ConversationState.CANCELLED)
            ctx.whatsapp.send_buttons(phone, message_templates.render("order_cancelled"), [SHOP_AGAIN_BUTTON])

    def _on_greet(self, ctx, conversation, message):
        self._greet(ctx, message.phone)
        self._set_state(conversation, ConversationState.BROWSING)

    def _on_browse_prompt(self, ctx, conversation, message):
        if asks_for_catalog(message.text):
            self._send_catalog(ctx, message.phone)
        else:
            ctx.whatsapp.send_buttons(message.phone, message_templates.render("browse_prompt"), [VIEW_CATALOG_BUTTON])

    def _on_start_checkout(self, ctx, conversation, message):
        try:
            cart = build_cart(message.catalog_id or ctx.config.catalog_id, message.product_items)
        except ValidationError:
            logger.warning("malformed catalog order", exc_info=True, extra={"tenant_id": ctx.tenant_id})
            cart = None
        if cart is None or cart.is_empty():
            ctx.whatsapp.send_text(message.phone, message_templates.render("empty_cart"))
            return

        clear_checkout(conversation)
        conversation.cart = cart.to_dict()
        self._set_state(conversation, ConversationState.AWAITING_ADDRESS)
        ctx.db.commit()
        ctx.whatsapp.send_text(message.phone, message_templates.cart_summary(cart, ctx.config.currency))

    def _on_address_text(self, ctx, conversation, message):
        self.address_resolver.handle_text(ctx, conversation, message.text)

    def _on_address_location(self, ctx, conversation, message):
        self.address_resolver.handle_location(ctx, conversation, message.location or {})

    def _on_resend_payment_link(self, ctx, conversation, message):
        if not conversation.payment_link_url:
            logger.error("awaiting payment without a link", extra={"tenant_id": ctx.tenant_id, "phone": message.phone})
            reset_conversation(conversation)
            self._greet(ctx, message.phone)
            return
        ctx.whatsapp.send_text(
            message.phone,
            message_templates.render(
                "payment_pending",
                order_id=conversation.order_id,
                payment_link_url=conversation.payment_link_url,
            ),
        )

    def _on_offer_shop_again(self, ctx, conversation, message):
        ctx.whatsapp.send_buttons(message.phone, message_templates.render("shop_again"), [SHOP_AGAIN_BUTTON])

    def _on_handle_button(self, ctx, conversation, message):
        button_id = message.button_id
        if button_id == BUTTON_VIEW_CATALOG:
            conversation.pending_address = None
            self._send_catalog(ctx, message.phone)
            self._set_state(conversation, ConversationState.BROWSING)
        elif button_id in (BUTTON_RESTART, BUTTON_HELP):
            self._run_command(ctx, conversation, button_id)
        elif button_id == BUTTON_REJECT_ADDRESS:
            if coerce_state(conversation.state) == ConversationState.AWAITING_ADDRESS:
                self.address_resolver.reject_pending(ctx, conversation)
        else:
            logger.info("unknown button %s", button_id, extra={"tenant_id": ctx.tenant_id})

    def _on_unsupported_guidance(self, ctx, conversation, message):
        ctx.whatsapp.send_text(message.phone, message_templates.render("unsupported"))
