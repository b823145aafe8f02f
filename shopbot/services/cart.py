from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from shopbot.core.errors import ValidationError


@dataclass(frozen=True)
class CartItem:
    product_id: str
    quantity: int
    unit_price_minor: int

    @property
    def line_total_minor(self) -> int:
        return self.unit_price_minor * self.quantity

    @property
    def unit_price_major(self) -> float:
        return minor_to_major(self.unit_price_minor)

    @property
    def line_total_major(self) -> float:
        return minor_to_major(self.line_total_minor)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_minor": self.unit_price_minor,
            "unit_price_major": self.unit_price_major,
            "line_total_major": self.line_total_major,
        }


@dataclass(frozen=True)
class Cart:
    catalog_id: str | None
    items: tuple[CartItem, ...] = field(default_factory=tuple)

    @property
    def total_in_minor_units(self) -> int:
        return sum(item.line_total_minor for item in self.items)

    @property
    def total_in_major_units(self) -> float:
        return minor_to_major(self.total_in_minor_units)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "items": [item.to_dict() for item in self.items],
            "total_in_minor_units": self.total_in_minor_units,
            "total_in_major_units": self.total_in_major_units,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Cart":
        data = data or {}
        items = tuple(
            CartItem(
                product_id=str(item["product_id"]),
                quantity=int(item["quantity"]),
                unit_price_minor=int(item["unit_price_minor"]),
            )
            for item in data.get("items") or []
        )
        return cls(catalog_id=data.get("catalog_id"), items=items)


def minor_to_major(amount_minor: int) -> float:
    if amount_minor % 100 == 0:
        return float(amount_minor // 100)
    return amount_minor / 100


def _price_to_minor(raw_price: Any) -> int:
    # WhatsApp order messages carry item_price in major units
    try:
        return int(round(float(raw_price) * 100))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"invalid item price: {raw_price!r}") from exc


def build_cart(catalog_id: str | None, product_items: Iterable[dict[str, Any]] | None) -> Cart:
    items: list[CartItem] = []
    for raw in product_items or []:
        product_id = raw.get("product_retailer_id") or raw.get("product_id")
        if not product_id:
            raise ValidationError("order item without product id")
        quantity = int(raw.get("quantity") or 0)
        if quantity <= 0:
            continue
        if "unit_price_minor" in raw:
            unit_price_minor = int(raw["unit_price_minor"])
        else:
            unit_price_minor = _price_to_minor(raw.get("item_price"))
        items.append(CartItem(product_id=str(product_id), quantity=quantity, unit_price_minor=unit_price_minor))
    return Cart(catalog_id=catalog_id, items=tuple(items))


def format_amount(amount_minor: int, currency: str = "INR") -> str:
    symbol = "₹" if currency == "INR" else f"{currency} "
    major = minor_to_major(amount_minor)
    if float(major).is_integer():
        return f"{symbol}{int(major):,}"
    return f"{symbol}{major:,.2f}"
