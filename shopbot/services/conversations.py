from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopbot.fsm.states import ConversationState
from shopbot.models.conversation import Conversation

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_conversation(db: Session, tenant_id: str, phone_number: str) -> Conversation | None:
    return (
        db.query(Conversation)
        .filter(Conversation.tenant_id == tenant_id, Conversation.phone_number == phone_number)
        .first()
    )


def get_or_create_conversation(
    db: Session,
    tenant_id: str,
    phone_number: str,
    customer_name: str | None = None,
) -> Conversation:
    conversation = get_conversation(db, tenant_id, phone_number)
    if conversation is not None:
        if customer_name and not conversation.customer_name:
            conversation.customer_name = customer_name
        return conversation

    conversation = Conversation(
        tenant_id=tenant_id,
        phone_number=phone_number,
        customer_name=customer_name,
        state=ConversationState.NEW.value,
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        # another worker created it first
        db.rollback()
        conversation = get_conversation(db, tenant_id, phone_number)
        if conversation is None:
            raise
        return conversation
    db.refresh(conversation)
    logger.info("conversation created", extra={"tenant_id": tenant_id, "phone": phone_number})
    return conversation


def find_by_payment_link(db: Session, tenant_id: str, payment_link_id: str) -> Conversation | None:
    return (
        db.query(Conversation)
        .filter(Conversation.tenant_id == tenant_id, Conversation.payment_link_id == payment_link_id)
        .first()
    )


def clear_checkout(conversation: Conversation) -> None:
    conversation.cart = None
    conversation.address = None
    conversation.pending_address = None
    conversation.order_id = None
    conversation.payment_link_id = None
    conversation.payment_link_url = None


def reset_conversation(
    conversation: Conversation,
    state: ConversationState = ConversationState.BROWSING,
) -> Conversation:
    clear_checkout(conversation)
    conversation.state = state.value
    return conversation
