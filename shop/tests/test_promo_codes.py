from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from shop.models import DiscountType, PromoCode
from shop.services.promo_codes import (
    check_promo_active,
    find_promo_code,
    normalize_promo_code,
    promo_discount_amount,
    validate_promo,
)


class PromoCodeServiceTests(TestCase):
    def setUp(self):
        self.promo = PromoCode.objects.create(
            code="  summer20 ",
            discount_type=DiscountType.PERCENTAGE,
            amount=Decimal("20"),
        )

    def test_codes_are_normalized(self):
        self.assertEqual(self.promo.code, "SUMMER20")
        self.assertEqual(normalize_promo_code(" summer20"), "SUMMER20")
        self.assertEqual(find_promo_code("summer20").pk, self.promo.pk)
        self.assertIsNone(find_promo_code("   "))

    def test_percentage_and_fixed_amounts(self):
        self.assertEqual(promo_discount_amount(self.promo, Decimal("50.00")), Decimal("10.00"))

        fixed = PromoCode(code="TENOFF", discount_type=DiscountType.FIXED, amount=Decimal("10"))
        self.assertEqual(promo_discount_amount(fixed, Decimal("6.00")), Decimal("6.00"))
        self.assertEqual(promo_discount_amount(fixed, Decimal("0")), Decimal("0"))

    def test_valid_promo(self):
        result = validate_promo(self.promo, Decimal("40.00"))
        self.assertTrue(result.valid)
        self.assertIsNone(result.reason)
        self.assertEqual(result.discount_amount, Decimal("8.00"))

    def test_rejection_reasons(self):
        now = timezone.now()

        self.assertEqual(validate_promo(None, Decimal("10")).reason, "Promo code not found.")

        self.promo.is_active = False
        self.assertEqual(check_promo_active(self.promo, Decimal("10"), now)[1], "This promo code is inactive.")
        self.promo.is_active = True

        self.promo.starts_at = now + timedelta(days=1)
        self.assertEqual(check_promo_active(self.promo, Decimal("10"), now)[1], "This promo code is not active yet.")
        self.promo.starts_at = None

        self.promo.ends_at = now - timedelta(seconds=1)
        self.assertEqual(check_promo_active(self.promo, Decimal("10"), now)[1], "This promo code has expired.")
        self.promo.ends_at = None

        self.promo.minimum_order_value = Decimal("25")
        self.assertEqual(
            check_promo_active(self.promo, Decimal("10"), now)[1],
            "Minimum order value of 25.00 required.",
        )
        self.promo.minimum_order_value = None

        self.promo.max_redemptions = 2
        self.promo.redemptions = 2
        self.assertEqual(
            check_promo_active(self.promo, Decimal("10"), now)[1],
            "This promo code has reached its usage limit.",
        )

    def test_zero_discount_does_not_apply(self):
        result = validate_promo(self.promo, Decimal("0"))
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "Promo code does not apply to this order.")
