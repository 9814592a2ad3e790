"""
Aggregate the concrete shop models.
Django imports this package as `shop.models`.
"""
from .base import TimeStampedModel, ActivatableModel, PublicIdModel, new_id  # abstract
from .product import Product
from .promo_code import DiscountType, PromoCode, normalize_promo_code
from .site_config import SiteConfig
from .order import Order, OrderAppliedPromoCode, OrderItem, OrderStatus

__all__ = [
    # Abstracts / helpers
    "TimeStampedModel",
    "ActivatableModel",
    "PublicIdModel",
    "new_id",
    # Concrete
    "Product",
    "DiscountType",
    "PromoCode",
    "normalize_promo_code",
    "SiteConfig",
    "Order",
    "OrderItem",
    "OrderAppliedPromoCode",
    "OrderStatus",
]
