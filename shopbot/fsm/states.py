"""States, event kinds and the transition table of the checkout conversation.

``resolve_action`` is a pure lookup: the engine asks it what to do for the
current ``(state, event kind)`` pair and only then touches storage or sends
messages. Pairs missing from the table are ignored.
"""
from __future__ import annotations

from enum import Enum


class ConversationState(str, Enum):
    NEW = "NEW"
    BROWSING = "BROWSING"
    AWAITING_ADDRESS = "AWAITING_ADDRESS"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class EventKind(str, Enum):
    TEXT = "text"
    CATALOG_ORDER = "catalog_order"
    INTERACTIVE_REPLY = "interactive_reply"
    LOCATION_SHARE = "location_share"
    PAYMENT_PAID = "payment_paid"
    PAYMENT_EXPIRED = "payment_expired"
    UNSUPPORTED = "unsupported"


class Action(str, Enum):
    GREET = "greet"
    BROWSE_PROMPT = "browse_prompt"
    START_CHECKOUT = "start_checkout"
    ADDRESS_TEXT = "address_text"
    ADDRESS_LOCATION = "address_location"
    RESEND_PAYMENT_LINK = "resend_payment_link"
    OFFER_SHOP_AGAIN = "offer_shop_again"
    HANDLE_BUTTON = "handle_button"
    COMPLETE = "complete"
    EXPIRE = "expire"
    UNSUPPORTED_GUIDANCE = "unsupported_guidance"


S = ConversationState
E = EventKind

# (state, kind) -> (action, nominal next state; None keeps the current state)
TRANSITIONS: dict[tuple[ConversationState, EventKind], tuple[Action, ConversationState | None]] = {
    (S.NEW, E.TEXT): (Action.GREET, S.BROWSING),
    (S.CANCELLED, E.TEXT): (Action.GREET, S.BROWSING),
    (S.BROWSING, E.TEXT): (Action.BROWSE_PROMPT, None),
    (S.AWAITING_ADDRESS, E.TEXT): (Action.ADDRESS_TEXT, None),
    (S.AWAITING_PAYMENT, E.TEXT): (Action.RESEND_PAYMENT_LINK, None),
    (S.COMPLETED, E.TEXT): (Action.OFFER_SHOP_AGAIN, None),
    (S.NEW, E.CATALOG_ORDER): (Action.START_CHECKOUT, S.AWAITING_ADDRESS),
    (S.BROWSING, E.CATALOG_ORDER): (Action.START_CHECKOUT, S.AWAITING_ADDRESS),
    (S.AWAITING_ADDRESS, E.CATALOG_ORDER): (Action.START_CHECKOUT, S.AWAITING_ADDRESS),
    (S.COMPLETED, E.CATALOG_ORDER): (Action.START_CHECKOUT, S.AWAITING_ADDRESS),
    (S.CANCELLED, E.CATALOG_ORDER): (Action.START_CHECKOUT, S.AWAITING_ADDRESS),
    (S.AWAITING_PAYMENT, E.CATALOG_ORDER): (Action.RESEND_PAYMENT_LINK, None),
    (S.AWAITING_ADDRESS, E.LOCATION_SHARE): (Action.ADDRESS_LOCATION, None),
}

for _state in ConversationState:
    TRANSITIONS[(_state, E.INTERACTIVE_REPLY)] = (Action.HANDLE_BUTTON, None)
    TRANSITIONS[(_state, E.PAYMENT_PAID)] = (Action.COMPLETE, S.COMPLETED)
    TRANSITIONS[(_state, E.PAYMENT_EXPIRED)] = (Action.EXPIRE, S.BROWSING)
    TRANSITIONS[(_state, E.UNSUPPORTED)] = (Action.UNSUPPORTED_GUIDANCE, None)

del _state

# applied by the payment reconciler through next_state; never dispatched to the engine
PAYMENT_EVENT_KINDS = frozenset({E.PAYMENT_PAID, E.PAYMENT_EXPIRED})

# Interactive reply ids the engine understands
BUTTON_VIEW_CATALOG = "view_catalog"
BUTTON_RESTART = "restart"
BUTTON_HELP = "help"
BUTTON_REJECT_ADDRESS = "reject_address"

RESTART_COMMANDS = frozenset({"restart", "reset", "start over", "new order"})
HELP_COMMANDS = frozenset({"help", "support", "assistance", "?"})
CANCEL_COMMANDS = frozenset({"cancel", "cancel order"})
CATALOG_KEYWORDS = ("catalog", "catalogue", "collection", "products", "items", "browse", "shop", "menu")


def coerce_state(value: str | ConversationState | None) -> ConversationState:
    if isinstance(value, ConversationState):
        return value
    try:
        return ConversationState(value or S.NEW.value)
    except ValueError:
        return S.NEW


def resolve_action(state, kind) -> tuple[Action, ConversationState | None] | None:
    return TRANSITIONS.get((coerce_state(state), EventKind(kind)))


def next_state(state, kind) -> ConversationState:
    """State a successful transition lands in; the current state when unhandled."""
    current = coerce_state(state)
    resolved = resolve_action(current, kind)
    if resolved is None or resolved[1] is None:
        return current
    return resolved[1]


def normalize_command(text: str | None) -> str:
    return " ".join((text or "").strip().lower().split())


def global_command(text: str | None) -> str | None:
    command = normalize_command(text)
    if command in RESTART_COMMANDS:
        return BUTTON_RESTART
    if command in HELP_COMMANDS:
        return BUTTON_HELP
    if command in CANCEL_COMMANDS:
        return "cancel"
    return None


def asks_for_catalog(text: str | None) -> bool:
    normalized = normalize_command(text)
    return any(keyword in normalized for keyword in CATALOG_KEYWORDS)
