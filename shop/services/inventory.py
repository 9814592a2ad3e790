"""
shop.services.inventory

Stock policy shared by online checkout, in-person sales and order deletion.

SiteConfig.auto_deduct_stock
- on  : a placed order reserves units (reserved_stock += qty); stock is untouched
        until an admin releases the reservation.
- off : a placed order deducts units immediately (stock -= qty).

Every update is a single UPDATE with an F() expression, so concurrent orders
for the same product compose without row locks.
"""

from __future__ import annotations

from django.db.models import F, Value
from django.db.models.functions import Greatest

from shop.models import Product


def apply_stock_policy(product_id: str, quantity: int, auto_deduct: bool) -> int:
    """Returns the number of product rows updated (0 when the product is gone)."""
    qs = Product.objects.filter(pk=product_id)
    if auto_deduct:
        return qs.update(reserved_stock=F("reserved_stock") + quantity)
    return qs.update(stock=F("stock") - quantity)


def release_stock(product_id: str, quantity: int, auto_deduct: bool) -> int:
    """Undo apply_stock_policy for a deleted order."""
    qs = Product.objects.filter(pk=product_id)
    if auto_deduct:
        return qs.update(reserved_stock=Greatest(F("reserved_stock") - quantity, Value(0)))
    return qs.update(stock=F("stock") + quantity)
