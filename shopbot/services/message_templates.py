from __future__ import annotations

from shopbot.services.cart import Cart, format_amount

TEMPLATES: dict[str, str] = {
    "greeting": (
        "👋 Welcome to {business_name}!\n\n"
        "Browse our collection and add items to your cart. "
        "When you're ready, send the cart here and we'll take care of the rest."
    ),
    "help": (
        "ℹ️ How to order:\n"
        "1. Tap *View Collection* and add items to your cart\n"
        "2. Send the cart in this chat\n"
        "3. Share your location or type your full delivery address\n"
        "4. Pay with the secure link we send you\n\n"
        "Type *restart* to start over or *cancel* to cancel your order."
    ),
    "catalog": "🛍️ Here is our collection. Add items to your cart and send it to us!",
    "browse_prompt": "Tap *View Collection* to browse our products, or type *help* for assistance.",
    "empty_cart": "Your cart looks empty. Please add items from our collection and send the cart again.",
    "address_invalid": (
        "⚠️ That address looks incomplete.\n\n"
        "Please send your complete delivery address including house/flat number, "
        "street, area, city and PIN code, or share your location 📍."
    ),
    "address_ask_detail": (
        "📍 We found this location:\n{address}\n\n"
        "Please reply with your house/flat number and building name to complete the address."
    ),
    "address_location_failed": (
        "We couldn't read an address from that location. "
        "Please type your complete delivery address instead."
    ),
    "address_manual": (
        "No problem. Please type your complete delivery address "
        "(house/flat, street, area, city, PIN code)."
    ),
    "generating_link": "📝 Address received! Generating your payment link...",
    "payment_link_failed": "😕 We couldn't create your payment link right now. Please send your address again to retry.",
    "payment_pending": (
        "⏳ Your order *{order_id}* is waiting for payment.\n\n"
        "💳 Pay here: {payment_link_url}"
    ),
    "payment_confirmed": (
        "✅ Payment received!\n\n"
        "Order: *{order_id}*\n"
        "Amount paid: {total}\n"
        "Payment ID: {payment_id}\n\n"
        "We'll deliver to:\n{address}\n\n"
        "Thank you for shopping with {business_name}! 🎉"
    ),
    "payment_expired": (
        "⌛ The payment link for order *{order_id}* has expired and the order was cancelled.\n\n"
        "Would you like to start a new order?"
    ),
    "payment_cancelled": (
        "❌ The payment link for order *{order_id}* was cancelled.\n\n"
        "Would you like to start a new order?"
    ),
    "shop_again": "🎉 Your last order is complete. Would you like to shop again?",
    "order_cancelled": "❌ Your order has been cancelled. Tap below whenever you want to shop again.",
    "restarted": "🔄 Starting over. Your cart has been cleared.",
    "unsupported": (
        "Sorry, I can only understand text, locations and carts sent from our catalog. "
        "Type *help* to see how to order."
    ),
    "error": "😕 Something went wrong on our side. Please try again or type *restart* to start over.",
}


def render(name: str, **values) -> str:
    return TEMPLATES[name].format(**values)


def cart_summary(cart: Cart, currency: str = "INR") -> str:
    lines = ["🛒 *Your Cart*", ""]
    for index, item in enumerate(cart.items, start=1):
        lines.append(f"{index}. {item.product_id}")
        lines.append(
            f"   Qty: {item.quantity} × {format_amount(item.unit_price_minor, currency)}"
            f" = {format_amount(item.line_total_minor, currency)}"
        )
    lines.append("")
    lines.append(f"*Total: {format_amount(cart.total_in_minor_units, currency)}*")
    lines.append("")
    lines.append(
        "📍 Please share your location or type your complete delivery address "
        "(house/flat, street, area, city, PIN code)."
    )
    return "\n".join(lines)


def payment_link_message(
    *,
    order_id: str,
    item_count: int,
    total_minor: int,
    address: str,
    payment_link_url: str,
    currency: str = "INR",
    expiry_hours: int = 24,
) -> str:
    return "\n".join(
        [
            "🧾 *Order Summary*",
            "",
            f"Order ID: *{order_id}*",
            f"Items: {item_count}",
            f"Total: *{format_amount(total_minor, currency)}*",
            "",
            "📦 Delivery address:",
            address,
            "",
            f"💳 Pay securely here: {payment_link_url}",
            "",
            f"This link is valid for {expiry_hours} hours.",
        ]
    )
