"""
shop.models.promo_code

Promo codes redeemable at checkout.

========= CHANGE LOG =========
2026-08-21 • Codes are normalized on save (trim + upper) so lookups by code are exact.  # CHANGED:
2026-08-21 • redemptions is only ever incremented (by the order finalizer).           # CHANGED:
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from .base import ActivatableModel, PublicIdModel


def normalize_promo_code(code: str) -> str:
    return (code or "").strip().upper()


class DiscountType(models.TextChoices):
    PERCENTAGE = "PERCENTAGE", "Percentage"
    FIXED = "FIXED", "Fixed amount"


class PromoCode(PublicIdModel, ActivatableModel):
    code = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True, default="")
    discount_type = models.CharField(
        max_length=16,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Percentage (0-100) or fixed currency amount, depending on discount type.",
    )
    minimum_order_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_redemptions = models.PositiveIntegerField(null=True, blank=True)
    redemptions = models.PositiveIntegerField(default=0)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-created_at",)

    def save(self, *args, **kwargs):
        self.code = normalize_promo_code(self.code)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code
