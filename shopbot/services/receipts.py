import os
from datetime import datetime, timezone

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from shopbot.core.config import RECEIPTS_DIR
from shopbot.services.cart import minor_to_major


def _money(amount_minor: int, currency: str) -> str:
    # Helvetica has no rupee glyph
    return f"{currency} {minor_to_major(int(amount_minor)):,.2f}"


def receipt_filename(order) -> str:
    return f"receipt_{order.order_id}.pdf"


def generate_receipt_pdf(order, business_name: str, base_dir: str = RECEIPTS_DIR) -> str:
    """
    Render a one-page payment receipt for a paid order.
    Returns the path of the generated PDF.
    """
    tenant_dir = os.path.join(base_dir, order.tenant_id)
    os.makedirs(tenant_dir, exist_ok=True)
    file_path = os.path.join(tenant_dir, receipt_filename(order))

    c = canvas.Canvas(file_path, pagesize=A4)
    _, height = A4
    y = height - 50

    def write_line(text: str = "", gap: int = 18, bold: bool = False, font_size: int = 10):
        nonlocal y
        c.setFont("Helvetica-Bold" if bold else "Helvetica", font_size)
        c.drawString(50, y, text)
        y -= gap

    currency = order.currency or "INR"
    paid_at = order.paid_at or datetime.now(timezone.utc)

    write_line(business_name, gap=24, bold=True, font_size=16)
    write_line("PAYMENT RECEIPT", gap=26, bold=True, font_size=12)

    write_line(f"Order: {order.order_id}", gap=16)
    write_line(f"Date: {paid_at.strftime('%d/%m/%Y %H:%M')}", gap=16)
    if order.customer_name:
        write_line(f"Customer: {order.customer_name}", gap=16)
    write_line(f"Phone: {order.phone_number}", gap=16)
    if order.payment_id:
        write_line(f"Payment ID: {order.payment_id}", gap=16)
    if order.payment_method:
        write_line(f"Method: {order.payment_method}", gap=16)
    y -= 8

    write_line("ITEMS", gap=18, bold=True)
    for item in order.items or []:
        quantity = int(item.get("quantity") or 0)
        unit_minor = int(item.get("unit_price_minor") or 0)
        write_line(
            f"{item.get('product_id')}  x{quantity}  @ {_money(unit_minor, currency)}"
            f"  = {_money(unit_minor * quantity, currency)}",
            gap=16,
        )
    y -= 6
    write_line(f"TOTAL PAID: {_money(order.total_minor_units, currency)}", gap=24, bold=True, font_size=12)

    address = (order.shipping_address or {}).get("full_address")
    if address:
        write_line("DELIVER TO", gap=18, bold=True)
        for part in [p.strip() for p in address.split(",") if p.strip()]:
            write_line(part, gap=14)

    y -= 10
    write_line("Thank you for your order!", gap=14)

    c.showPage()
    c.save()
    return file_path
