"""
shop.models.order

Order persistence (Django authoritative).

We store the payment reference + purchaser info + a price snapshot per line so:
- Stripe webhook / success-page confirmation is idempotent (stripe_payment_id is UNIQUE)
- Historical orders stay readable after catalog or promo changes
- Analytics can prorate order-level discounts across line items

========= CHANGE LOG =========
2026-10-16 • ADD: stock_reserved = stock policy applied when the order was placed.      # CHANGED:
             Deletion and in-person edits release stock by it, not by today's setting. # CHANGED:
2026-08-21 • ADD: OrderAppliedPromoCode ledger; promo_code/promo_code_code on the header  # CHANGED:
             are a projection of the FIRST applied promo only.                           # CHANGED:
2026-07-30 • ADD: is_in_person + nullable stripe_payment_id for point-of-sale orders.     # CHANGED:
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from shop.addresses import Address, parse_address

from .base import PublicIdModel
from .promo_code import DiscountType


def _money(**kwargs) -> models.DecimalField:
    kwargs.setdefault("default", Decimal("0.00"))
    return models.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"


class Order(PublicIdModel):
    """
    One purchase. Created exactly once by the checkout finalizer (online) or by
    the in-person sale flow (point of sale).
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shop_orders",
    )
    email = models.EmailField(blank=True, null=True, db_index=True)
    name = models.CharField(max_length=255, blank=True, default="")
    address = models.TextField(
        blank=True,
        default="{}",
        help_text="Serialized JSON; postal address (online) or {type: in-person, location} (POS).",
    )

    # ---- amounts (base currency) ----
    subtotal = _money()
    shipping = _money()
    tax = _money()
    discount = _money()
    total = _money()

    # ---- lifecycle ----
    status = models.CharField(
        max_length=16,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )
    tracking_number = models.CharField(max_length=128, blank=True, null=True)
    shipped_at = models.DateTimeField(blank=True, null=True)
    is_in_person = models.BooleanField(default=False, db_index=True)
    stock_reserved = models.BooleanField(
        default=False,
        help_text="True when placing the order reserved units; False when it deducted them.",
    )

    # ---- payment reference (idempotency key) ----
    stripe_payment_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe PaymentIntent id (pi_...) or Checkout Session id (cs_...) as fallback.",
    )

    # ---- primary promo (projection of applied_promo_codes[0]) ----
    promo_code = models.ForeignKey(
        "shop.PromoCode",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    promo_code_code = models.CharField(max_length=64, blank=True, null=True)

    notes = models.TextField(blank=True, null=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["status", "created_at"], name="shop_order_status_created_idx"),
        ]

    @property
    def address_info(self) -> Address:
        return parse_address(self.address, is_in_person=self.is_in_person)

    def __str__(self) -> str:
        email = self.email or "guest"
        return f"Order({self.pk})<{email}> {self.status}"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    # No DB constraint: the id must survive if the product is later deleted.
    product = models.ForeignKey(
        "shop.Product",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="+",
    )
    product_name = models.CharField(max_length=200)
    product_image = models.CharField(max_length=500, blank=True, null=True)
    quantity = models.PositiveIntegerField()
    size = models.CharField(max_length=32, blank=True, null=True)
    color = models.CharField(max_length=64, blank=True, null=True)
    price_at_purchase = _money(help_text="Unit price snapshot; never recomputed.")

    class Meta:
        ordering = ("id",)

    @property
    def line_total(self) -> Decimal:
        return self.price_at_purchase * self.quantity

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity}"


class OrderAppliedPromoCode(models.Model):
    """Snapshot of a promo as applied to one order; survives promo edits/deletes."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="applied_promo_codes")
    promo_code = models.ForeignKey(
        "shop.PromoCode",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="applications",
    )
    code = models.CharField(max_length=64)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices)
    amount = _money(help_text="Rate or value of the promo at time of use.")
    discount_applied = _money(help_text="Currency amount this promo took off this order.")

    class Meta:
        ordering = ("id",)

    def __str__(self) -> str:
        return f"{self.code} -{self.discount_applied}"
