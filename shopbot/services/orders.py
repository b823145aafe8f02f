"""Checkout and payment reconciliation.

Orders are created only after the payment provider hands back a link, so a
failed link request never leaves a half-made order behind. Webhook
reconciliation is keyed on the payment link id, which is unique across
tenants. A paid event moves an order out of ``PAYMENT_PENDING`` with a
conditional update, and only the delivery that wins that update notifies the
customer.
"""
from __future__ import annotations

import logging
import re
import secrets
import string
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from shopbot.core.config import DEFAULT_COUNTRY, PAYMENT_LINK_EXPIRY_HOURS, RECEIPTS_ENABLED
from shopbot.core.errors import EmptyCartError, ExternalServiceError
from shopbot.fsm.states import ConversationState, EventKind, next_state
from shopbot.models.conversation import Conversation
from shopbot.models.order import Order
from shopbot.payments.events import PaymentEvent
from shopbot.services import message_templates
from shopbot.services.cart import Cart, format_amount
from shopbot.services.context import TenantContext
from shopbot.services.conversation_locks import ConversationLocks
from shopbot.services.conversations import find_by_payment_link, reset_conversation, utcnow
from shopbot.services.receipts import generate_receipt_pdf, receipt_filename
from shopbot.services.service_cache import TenantServiceCache
from shopbot.services.tenant_resolver import TenantResolver
from shopbot.whatsapp.base import ReplyButton

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_PIN_PATTERN = re.compile(r"\b\d{6}\b")


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAID = "PAID"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    CREATED = "CREATED"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_order_id() -> str:
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"ORD-{timestamp}-{suffix}"


def shipping_address_payload(address: str, pending: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"full_address": address, "country": DEFAULT_COUNTRY}
    pin = _PIN_PATTERN.search(address)
    if pin:
        payload["pincode"] = pin.group(0)
    if pending:
        payload["source"] = pending.get("source")
        if pending.get("location"):
            payload["location"] = pending["location"]
    else:
        payload["source"] = "text"
    return payload


def get_order_by_payment_link(db: Session, payment_link_id: str) -> Order | None:
    # global lookup: provider webhooks carry no tenant
    return db.query(Order).filter(Order.payment_link_id == payment_link_id).first()


def initiate_checkout(
    ctx: TenantContext,
    conversation: Conversation,
    address: str,
    *,
    pending: dict[str, Any] | None = None,
) -> Order | None:
    """Create the payment link and the order for a confirmed address.

    Returns ``None`` when the payment provider fails; the conversation is left
    as it was and the customer is asked to retry.
    """
    cart = Cart.from_dict(conversation.cart)
    if cart.is_empty():
        raise EmptyCartError("conversation has no cart to check out")

    phone = conversation.phone_number
    currency = ctx.config.currency
    ctx.whatsapp.send_text(phone, message_templates.render("generating_link"))

    order_id = generate_order_id()
    item_count = len(cart.items)
    try:
        link = ctx.payments.create_payment_link(
            amount_minor=cart.total_in_minor_units,
            currency=currency,
            reference_id=order_id,
            description=f"Order {order_id} - {item_count} item(s)",
            customer_phone=phone,
            customer_name=conversation.customer_name,
            expire_by=int(time.time()) + PAYMENT_LINK_EXPIRY_HOURS * 3600,
            notes={"tenant_id": ctx.tenant_id, "order_id": order_id, "phone": phone},
        )
    except ExternalServiceError:
        logger.warning(
            "payment link creation failed",
            exc_info=True,
            extra={"tenant_id": ctx.tenant_id, "phone": phone, "order_id": order_id},
        )
        ctx.whatsapp.send_text(phone, message_templates.render("payment_link_failed"))
        return None

    order = Order(
        order_id=order_id,
        tenant_id=ctx.tenant_id,
        phone_number=phone,
        customer_name=conversation.customer_name,
        items=[item.to_dict() for item in cart.items],
        total_minor_units=cart.total_in_minor_units,
        currency=currency,
        shipping_address=shipping_address_payload(address, pending),
        payment_link_id=link.id,
        payment_link_url=link.short_url,
        payment_status=PaymentStatus.CREATED.value,
        status=OrderStatus.PAYMENT_PENDING.value,
    )
    ctx.db.add(order)
    ctx.db.commit()

    conversation.address = address
    conversation.pending_address = None
    conversation.order_id = order_id
    conversation.payment_link_id = link.id
    conversation.payment_link_url = link.short_url
    conversation.state = ConversationState.AWAITING_PAYMENT.value
    ctx.db.commit()

    logger.info(
        "order created",
        extra={"tenant_id": ctx.tenant_id, "order_id": order_id, "payment_link_id": link.id},
    )
    ctx.whatsapp.send_text(
        phone,
        message_templates.payment_link_message(
            order_id=order_id,
            item_count=item_count,
            total_minor=cart.total_in_minor_units,
            address=address,
            payment_link_url=link.short_url,
            currency=currency,
            expiry_hours=PAYMENT_LINK_EXPIRY_HOURS,
        ),
    )
    return order


def cancel_open_order(ctx: TenantContext, conversation: Conversation) -> None:
    """Cancel the unpaid order linked to ``conversation``, if any."""
    link_id = conversation.payment_link_id
    if not link_id:
        return
    try:
        ctx.payments.cancel_payment_link(link_id)
    except ExternalServiceError:
        logger.warning("could not cancel payment link %s", link_id, extra={"tenant_id": ctx.tenant_id})

    updated = (
        ctx.db.query(Order)
        .filter(
            Order.payment_link_id == link_id,
            Order.tenant_id == ctx.tenant_id,
            Order.status == OrderStatus.PAYMENT_PENDING.value,
        )
        .update(
            {
                Order.status: OrderStatus.CANCELLED.value,
                Order.payment_status: PaymentStatus.CANCELLED.value,
                Order.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    ctx.db.commit()
    if updated:
        logger.info("order cancelled by customer", extra={"tenant_id": ctx.tenant_id, "payment_link_id": link_id})


@dataclass
class ReconcileResult:
    outcome: str
    order_id: str | None = None


class PaymentReconciler:
    def __init__(
        self,
        *,
        resolver: TenantResolver,
        services: TenantServiceCache,
        locks: ConversationLocks,
        receipts_enabled: bool = RECEIPTS_ENABLED,
    ) -> None:
        self.resolver = resolver
        self.services = services
        self.locks = locks
        self.receipts_enabled = receipts_enabled

    def reconcile_payment_paid(self, db: Session, event: PaymentEvent) -> ReconcileResult:
        link_id = event.payment_link_id
        order = get_order_by_payment_link(db, link_id) if link_id else None
        if order is None:
            logger.warning("paid event for unknown payment link", extra={"payment_link_id": link_id})
            return ReconcileResult("not_found")

        now = utcnow()
        updated = (
            db.query(Order)
            .filter(Order.id == order.id, Order.status == OrderStatus.PAYMENT_PENDING.value)
            .update(
                {
                    Order.status: OrderStatus.PAID.value,
                    Order.payment_status: PaymentStatus.PAID.value,
                    Order.payment_id: event.payment_id,
                    Order.payment_method: event.payment_method,
                    Order.paid_at: now,
                    Order.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        db.refresh(order)

        if not updated:
            if order.status == OrderStatus.PAID.value:
                logger.info("duplicate paid event ignored", extra={"order_id": order.order_id, "payment_link_id": link_id})
                return ReconcileResult("duplicate", order.order_id)
            logger.warning(
                "paid event for order in status %s ignored",
                order.status,
                extra={"order_id": order.order_id, "payment_link_id": link_id},
            )
            return ReconcileResult("ignored", order.order_id)

        logger.info("order paid", extra={"tenant_id": order.tenant_id, "order_id": order.order_id})

        config = self.resolver.resolve_by_tenant_id(db, order.tenant_id)
        if config is None:
            logger.error("order paid for unavailable tenant", extra={"tenant_id": order.tenant_id, "order_id": order.order_id})
            return ReconcileResult("paid", order.order_id)

        with self.locks.hold(order.tenant_id, order.phone_number):
            conversation = find_by_payment_link(db, order.tenant_id, link_id)
            if conversation is None:
                logger.warning(
                    "no conversation for paid order",
                    extra={"tenant_id": order.tenant_id, "order_id": order.order_id},
                )
            else:
                conversation.state = next_state(conversation.state, EventKind.PAYMENT_PAID).value
                db.commit()

        whatsapp = self.services.get_whatsapp(config)
        whatsapp.send_text(
            order.phone_number,
            message_templates.render(
                "payment_confirmed",
                order_id=order.order_id,
                total=format_amount(order.total_minor_units, order.currency),
                payment_id=order.payment_id or "-",
                address=(order.shipping_address or {}).get("full_address", ""),
                business_name=config.business_name,
            ),
        )
        if self.receipts_enabled:
            self._send_receipt(order, config.business_name, whatsapp)
        return ReconcileResult("paid", order.order_id)

    def _send_receipt(self, order: Order, business_name: str, whatsapp) -> None:
        try:
            path = generate_receipt_pdf(order, business_name)
            result = whatsapp.send_document(
                order.phone_number,
                path,
                receipt_filename(order),
                caption=f"Receipt for order {order.order_id}",
            )
            if not result.ok:
                logger.warning("receipt delivery failed: %s", result.error, extra={"order_id": order.order_id})
        except Exception:
            logger.exception("receipt generation failed", extra={"order_id": order.order_id})

    def reconcile_payment_expired(self, db: Session, event: PaymentEvent) -> ReconcileResult:
        return self._close_unpaid(db, event, PaymentStatus.EXPIRED)

    def reconcile_payment_cancelled(self, db: Session, event: PaymentEvent) -> ReconcileResult:
        return self._close_unpaid(db, event, PaymentStatus.CANCELLED)

    def _close_unpaid(self, db: Session, event: PaymentEvent, payment_status: PaymentStatus) -> ReconcileResult:
        link_id = event.payment_link_id
        order = get_order_by_payment_link(db, link_id) if link_id else None
        if order is None:
            logger.warning("%s event for unknown payment link", event.event, extra={"payment_link_id": link_id})
            return ReconcileResult("not_found")

        updated = (
            db.query(Order)
            .filter(
                Order.id == order.id,
                Order.status == OrderStatus.PAYMENT_PENDING.value,
            )
            .update(
                {
                    Order.status: OrderStatus.CANCELLED.value,
                    Order.payment_status: payment_status.value,
                    Order.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        db.refresh(order)
        if not updated:
            logger.warning(
                "%s event for order in status %s ignored",
                event.event,
                order.status,
                extra={"order_id": order.order_id, "payment_link_id": link_id},
            )
            return ReconcileResult("ignored", order.order_id)

        config = self.resolver.resolve_by_tenant_id(db, order.tenant_id)
        if config is None:
            logger.error("unpaid order closed for unavailable tenant", extra={"tenant_id": order.tenant_id})
            return ReconcileResult("closed", order.order_id)

        with self.locks.hold(order.tenant_id, order.phone_number):
            conversation = find_by_payment_link(db, order.tenant_id, link_id)
            if conversation is None:
                logger.warning(
                    "no conversation for %s order",
                    payment_status.value.lower(),
                    extra={"tenant_id": order.tenant_id, "order_id": order.order_id},
                )
                return ReconcileResult("closed", order.order_id)
            reset_conversation(conversation, next_state(conversation.state, EventKind.PAYMENT_EXPIRED))
            db.commit()

        self.services.get_whatsapp(config).send_buttons(
            order.phone_number,
            message_templates.render(f"payment_{payment_status.value.lower()}", order_id=order.order_id),
            [ReplyButton(id="view_catalog", title="🛍️ Start New Order")],
        )
        return ReconcileResult("closed", order.order_id)
