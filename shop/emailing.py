"""
shop.emailing

Transactional email for the storefront (order confirmation).

ENV/SETTINGS
- Uses Django email backend config (Anymail/Mailgun in production, locmem in tests)
- Uses DEFAULT_FROM_EMAIL
- SHOP_NAME / SHOP_CURRENCY_SYMBOL for simple branding

========= CHANGE LOG =========
2026-08-21 • ADD: discount line in the totals block (only when > 0).   # CHANGED:
2026-07-30 • ADD: send_order_confirmation_email() using EmailMultiAlternatives (text + HTML).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from html import escape
from typing import Any, Iterable, Mapping, Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

log = logging.getLogger("storefront")


def _from_email() -> str:
    return (
        getattr(settings, "DEFAULT_FROM_EMAIL", "")
        or getattr(settings, "SERVER_EMAIL", "")
        or "no-reply@localhost"
    )


def _shop_name() -> str:
    return getattr(settings, "SHOP_NAME", "") or "Storefront"


def _money(amount: Any) -> str:
    symbol = getattr(settings, "SHOP_CURRENCY_SYMBOL", "£")
    return f"{symbol}{Decimal(str(amount or 0)):.2f}"


def _item_specs(item: Mapping[str, Any], sep: str) -> str:
    bits = []
    if item.get("size"):
        bits.append(f"Size: {item['size']}")
    if item.get("color"):
        bits.append(f"Color: {item['color']}")
    return sep.join(bits)


def _line_total(item: Mapping[str, Any]) -> Decimal:
    return Decimal(str(item.get("price_at_purchase") or 0)) * int(item.get("quantity") or 0)


def send_order_confirmation_email(
    *,
    to_email: str,
    order_id: str,
    items: Iterable[Mapping[str, Any]],
    subtotal: Decimal,
    shipping: Decimal,
    tax: Decimal,
    total: Decimal,
    discount: Optional[Decimal] = None,
    name: Optional[str] = None,
) -> bool:
    """
    Send the purchaser an order summary.

    Returns False (and sends nothing) when the recipient is blank.
    Raises on backend failure; callers decide whether that is fatal.
    """
    recipient = (to_email or "").strip()
    if not recipient:
        log.warning("shop.emailing: no recipient for order %s; skipping confirmation", order_id)
        return False

    items = list(items)
    shop = _shop_name()
    first_name = (name or "").strip() or "there"
    subject = f"Order Confirmation - {order_id}"

    text_items = []
    for item in items:
        specs = _item_specs(item, ", ")
        text_items.append(
            f"- {item.get('product_name')} x{item.get('quantity')}"
            + (f" ({specs})" if specs else "")
            + f" - {_money(_line_total(item))}"
        )

    totals = [f"Subtotal: {_money(subtotal)}"]
    if discount and discount > 0:
        totals.append(f"Discount: -{_money(discount)}")
    totals += [
        f"Shipping: {_money(shipping)}",
        f"Tax: {_money(tax)}",
        f"Total: {_money(total)}",
    ]

    text_lines = [
        f"Hi {first_name},",
        "",
        f"Thank you for your purchase from {shop}!",
        "",
        f"Order ID: {order_id}",
        "",
        "Your Order:",
        *text_items,
        "",
        *totals,
        "",
        "We will let you know as soon as your order is on its way.",
        "",
        f"— The {shop} Team",
    ]
    text_body = "\n".join(text_lines)

    rows = []
    for item in items:
        specs = _item_specs(item, " • ")
        rows.append(
            "<tr>"
            f"<td style=\"padding: 8px 0;\">{escape(str(item.get('product_name') or ''))}"
            + (f"<br><small>{escape(specs)}</small>" if specs else "")
            + f"<br><small>Quantity: {item.get('quantity')}</small></td>"
            f"<td style=\"padding: 8px 0; text-align: right;\">{_money(_line_total(item))}</td>"
            "</tr>"
        )
    totals_html = "".join(f"<p style=\"margin: 4px 0;\">{escape(t)}</p>" for t in totals)

    html_body = f"""
<!doctype html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.5;">
    <h1 style="font-size: 22px;">Thank you for your purchase</h1>
    <p>Order #{escape(str(order_id))}</p>
    <p>Hi {escape(first_name)},</p>
    <table style="width: 100%; border-collapse: collapse;">{''.join(rows)}</table>
    {totals_html}
    <p>We will let you know as soon as your order is on its way.</p>
    <p>— The {escape(shop)} Team</p>
  </body>
</html>
""".strip()

    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=_from_email(),
        to=[recipient],
    )
    msg.attach_alternative(html_body, "text/html")
    msg.send(fail_silently=False)
    return True
