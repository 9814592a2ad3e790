"""
shop.services.admin_orders

Staff-side order lifecycle: status moves and deletion.

Allowed moves
  PENDING    -> PROCESSING | CANCELLED
  PROCESSING -> SHIPPED    | CANCELLED
  SHIPPED    -> DELIVERED  | SHIPPED (tracking number edit)
  DELIVERED / CANCELLED are terminal.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from shop.exceptions import InvalidStatusTransition
from shop.models import Order, OrderStatus
from shop.services.inventory import release_stock

log = logging.getLogger("storefront")

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.SHIPPED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def check_status_transition(current: str, target: str, tracking_number: Optional[str] = None) -> None:
    """Raise InvalidStatusTransition unless current -> target (with tracking_number) is allowed."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    if target != current or tracking_number is None:
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(f"Cannot move order from {current.label} to {target.label}.")

    if tracking_number is not None and target != OrderStatus.SHIPPED:
        raise InvalidStatusTransition("A tracking number can only be set on a shipped order.")


def update_order_status(order: Order, status: Optional[str] = None, tracking_number: Optional[str] = None) -> Order:
    current = OrderStatus(order.status)
    target = OrderStatus(status) if status else current
    tracking = (tracking_number or "").strip() or None

    check_status_transition(current, target, tracking)

    update_fields = ["status", "updated_at"]
    order.status = target
    if tracking is not None:
        order.tracking_number = tracking
        update_fields.append("tracking_number")
    if target == OrderStatus.SHIPPED and current != OrderStatus.SHIPPED:
        order.shipped_at = timezone.now()
        update_fields.append("shipped_at")

    order.save(update_fields=update_fields)
    log.info("Storefront admin: order=%s %s -> %s tracking=%s", order.pk, current, target, tracking or "-")
    return order


def release_order_stock(order: Order) -> None:
    """Undo the stock policy the order was placed under (order.stock_reserved)."""
    for item in order.items.all():
        if item.product_id:
            release_stock(item.product_id, item.quantity, order.stock_reserved)


def delete_order(order: Order) -> None:
    """
    Give the order's units back, then delete it. Promo redemption counters are
    left alone.
    """
    with transaction.atomic():
        release_order_stock(order)
        order_id = order.pk
        order.delete()

    log.info("Storefront admin: deleted order=%s (stock released, reserved=%s)", order_id, order.stock_reserved)
