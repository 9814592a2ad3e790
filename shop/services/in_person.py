"""
shop.services.in_person

Point-of-sale orders entered by staff.

- Prices always come from the live catalog (the request may only name products).
  An edit may keep a line whose product has since left the catalog; that line
  keeps the price it was sold at.
- Orders are born DELIVERED with no payment reference and no shipping/tax/discount.
- The stock policy is applied inside the same transaction as the order, so a
  failed stock update means no sale is recorded.
- Edits restock the old lines under the policy they were sold under, then apply
  today's policy to the new lines.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from django.db import transaction

from shop.addresses import in_person_address
from shop.exceptions import InvalidSale
from shop.models import Order, OrderItem, OrderStatus, Product, SiteConfig
from shop.services.admin_orders import delete_order, release_order_stock
from shop.services.inventory import apply_stock_policy

log = logging.getLogger("storefront")

ZERO = Decimal("0.00")
RECENT_LIMIT = 25


def _quantity(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def _sale_lines(
    customer_name: str,
    items: Iterable[Mapping[str, Any]],
    previous: Optional[Mapping[str, OrderItem]] = None,
) -> Tuple[str, Decimal, List[Dict[str, Any]]]:
    name = (customer_name or "").strip()
    items = list(items or [])
    if not name or not items:
        raise InvalidSale("Invalid sale data")

    previous = previous or {}
    product_ids = {str(item.get("productId") or "") for item in items}
    products = Product.objects.in_bulk([pid for pid in product_ids if pid])

    subtotal = ZERO
    lines: List[Dict[str, Any]] = []
    for item in items:
        product_id = str(item.get("productId") or "")
        product = products.get(product_id)
        before = previous.get(product_id)
        if product is None and before is None:
            raise InvalidSale("Product not found for sale")

        quantity = _quantity(item.get("quantity"))
        if quantity <= 0:
            raise InvalidSale("Quantity must be positive")

        price = product.price if product is not None else before.price_at_purchase
        subtotal += price * quantity
        lines.append(
            {
                "product_id": product_id,
                "product_name": (item.get("productName") or "").strip()
                or (product.name if product is not None else before.product_name)
                or "Product",
                "product_image": product.first_image() if product is not None else before.product_image,
                "quantity": quantity,
                "price_at_purchase": price,
                "size": item.get("size") or None,
                "color": item.get("color") or None,
            }
        )
    return name, subtotal, lines


def record_in_person_sale(
    customer_name: str,
    items: Iterable[Mapping[str, Any]],
    customer_email: Optional[str] = None,
    customer_location: Optional[str] = None,
    auto_deduct: Optional[bool] = None,
) -> Order:
    name, subtotal, lines = _sale_lines(customer_name, items)
    email = (customer_email or "").strip().lower() or None

    with transaction.atomic():
        if auto_deduct is None:
            auto_deduct = SiteConfig.auto_deduct_stock_enabled()

        order = Order.objects.create(
            email=email,
            name=name,
            address=in_person_address(customer_location),
            subtotal=subtotal,
            shipping=ZERO,
            tax=ZERO,
            discount=ZERO,
            total=subtotal,
            is_in_person=True,
            status=OrderStatus.DELIVERED,
            stock_reserved=auto_deduct,
        )
        OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in lines])

        for line in lines:
            apply_stock_policy(line["product_id"], line["quantity"], auto_deduct)

    log.info(
        "Storefront POS: order=%s items=%s total=%s auto_deduct=%s",
        order.pk,
        len(lines),
        subtotal,
        auto_deduct,
    )
    return order


def update_in_person_sale(
    order: Order,
    customer_name: str,
    items: Iterable[Mapping[str, Any]],
    customer_email: Optional[str] = None,
    customer_location: Optional[str] = None,
    auto_deduct: Optional[bool] = None,
) -> Order:
    """Replace customer details and lines of an in-person sale in one transaction."""
    if not order.is_in_person:
        raise InvalidSale("Only in-person sales can be edited")

    previous = {item.product_id: item for item in order.items.all() if item.product_id}
    name, subtotal, lines = _sale_lines(customer_name, items, previous=previous)
    email = (customer_email or "").strip().lower() or None

    with transaction.atomic():
        if auto_deduct is None:
            auto_deduct = SiteConfig.auto_deduct_stock_enabled()

        release_order_stock(order)
        order.items.all().delete()

        order.email = email
        order.name = name
        order.address = in_person_address(customer_location)
        order.subtotal = subtotal
        order.total = subtotal
        order.discount = ZERO
        order.stock_reserved = auto_deduct
        order.save(
            update_fields=["email", "name", "address", "subtotal", "total", "discount", "stock_reserved", "updated_at"]
        )

        OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in lines])
        for line in lines:
            apply_stock_policy(line["product_id"], line["quantity"], auto_deduct)

    log.info("Storefront POS: edited order=%s items=%s total=%s", order.pk, len(lines), subtotal)
    return order


def delete_in_person_sale(order: Order) -> None:
    if not order.is_in_person:
        raise InvalidSale("Only in-person sales can be deleted here")
    delete_order(order)


def recent_in_person_sales(limit: int = RECENT_LIMIT):
    return Order.objects.filter(is_in_person=True).prefetch_related("items").order_by("-created_at")[:limit]
