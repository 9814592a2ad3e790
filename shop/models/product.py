"""
shop.models.product
Catalog entry as consumed by checkout, inventory and analytics.

CHANGE LOG
----------
2026-09-02
- ADD: reserved_stock counter (used when SiteConfig.auto_deduct_stock is on).   # CHANGED:
- KEEP: stock has no floor; oversells show up as negative stock for follow-up.  # CHANGED:
"""
import json
from decimal import Decimal
from typing import Optional

from django.db import models

from .base import ActivatableModel, PublicIdModel


class Product(PublicIdModel, ActivatableModel):
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Unit cost used for profit reporting.",
    )
    shipping_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Per-unit inbound shipping, added to cost basis.",
    )
    images = models.JSONField(default=list, blank=True, help_text="List of image URLs")
    stock = models.IntegerField(default=0)
    reserved_stock = models.PositiveIntegerField(
        default=0,
        help_text="Units set aside for placed orders while still counted in stock.",
    )

    class Meta:
        ordering = ("name",)
        indexes = [models.Index(fields=["stock"], name="shop_product_stock_idx")]

    def first_image(self) -> Optional[str]:
        images = self.images
        if isinstance(images, str):
            # Older rows stored the list pre-serialized.
            try:
                images = json.loads(images)
            except ValueError:
                return None
        if isinstance(images, list) and images:
            return str(images[0])
        return None

    def __str__(self) -> str:
        return self.name
