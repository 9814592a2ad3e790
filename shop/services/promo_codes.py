"""
shop.services.promo_codes

Promo-code eligibility and discount math used by the checkout validator.

The order finalizer does NOT re-validate promos: by the time a payment
session completes, the customer has paid the discounted price, so the
per-promo amounts carried on the session are recorded as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from django.db.models import F
from django.utils import timezone

from shop.models import DiscountType, PromoCode, normalize_promo_code

__all__ = [
    "PromoValidation",
    "check_promo_active",
    "find_promo_code",
    "normalize_promo_code",
    "promo_discount_amount",
    "record_redemption",
    "validate_promo",
]

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PromoValidation:
    valid: bool
    reason: Optional[str]
    discount_amount: Decimal = ZERO


def find_promo_code(code: str) -> Optional[PromoCode]:
    normalized = normalize_promo_code(code)
    if not normalized:
        return None
    return PromoCode.objects.filter(code=normalized).first()


def check_promo_active(
    promo: PromoCode,
    subtotal: Decimal,
    now: Optional[datetime] = None,
) -> Tuple[bool, Optional[str]]:
    now = now or timezone.now()

    if not promo.is_active:
        return False, "This promo code is inactive."

    if promo.starts_at and now < promo.starts_at:
        return False, "This promo code is not active yet."

    if promo.ends_at and now > promo.ends_at:
        return False, "This promo code has expired."

    if promo.minimum_order_value and subtotal < promo.minimum_order_value:
        return False, f"Minimum order value of {promo.minimum_order_value:.2f} required."

    if promo.max_redemptions and promo.redemptions >= promo.max_redemptions:
        return False, "This promo code has reached its usage limit."

    return True, None


def promo_discount_amount(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """Currency amount the promo takes off `subtotal`, clamped to [0, subtotal]."""
    if subtotal <= 0:
        return ZERO

    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * (promo.amount / HUNDRED)
    else:
        discount = promo.amount

    if not discount.is_finite() or discount < 0:
        return ZERO

    return min(discount, subtotal)


def validate_promo(promo: Optional[PromoCode], subtotal: Decimal) -> PromoValidation:
    if promo is None:
        return PromoValidation(False, "Promo code not found.")

    valid, reason = check_promo_active(promo, subtotal)
    if not valid:
        return PromoValidation(False, reason)

    discount_amount = promo_discount_amount(promo, subtotal)
    if discount_amount <= 0:
        return PromoValidation(False, "Promo code does not apply to this order.")

    return PromoValidation(True, None, discount_amount)


def record_redemption(promo_id: str) -> int:
    """Count one use of a promo. Atomic F() increment; returns rows updated."""
    return PromoCode.objects.filter(pk=promo_id).update(redemptions=F("redemptions") + 1)
