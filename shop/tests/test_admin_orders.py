from decimal import Decimal
from unittest import mock

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase

from shop.admin import OrderAdminForm
from shop.exceptions import InvalidStatusTransition
from shop.models import Order, OrderAppliedPromoCode, OrderItem, OrderStatus, PromoCode, SiteConfig
from shop.services.admin_orders import delete_order, update_order_status
from shop.services.finalize import OrderFinalizer
from shop.tests.helpers import make_product, make_session


class StatusTransitionTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(email="ada@example.com", status=OrderStatus.PROCESSING)

    def test_happy_path_to_delivered(self):
        update_order_status(self.order, OrderStatus.SHIPPED, tracking_number=" RM123GB ")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.SHIPPED)
        self.assertEqual(self.order.tracking_number, "RM123GB")
        self.assertIsNotNone(self.order.shipped_at)

        update_order_status(self.order, OrderStatus.DELIVERED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DELIVERED)

    def test_tracking_edit_on_shipped_keeps_ship_date(self):
        update_order_status(self.order, OrderStatus.SHIPPED)
        shipped_at = Order.objects.get(pk=self.order.pk).shipped_at

        update_order_status(self.order, tracking_number="NEW456")
        self.order.refresh_from_db()
        self.assertEqual(self.order.tracking_number, "NEW456")
        self.assertEqual(self.order.shipped_at, shipped_at)

    def test_cancel_from_processing(self):
        update_order_status(self.order, OrderStatus.CANCELLED)
        self.assertEqual(Order.objects.get(pk=self.order.pk).status, OrderStatus.CANCELLED)

    def test_illegal_moves(self):
        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order, OrderStatus.DELIVERED)

        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order, OrderStatus.PENDING)

        update_order_status(self.order, OrderStatus.SHIPPED)
        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order, OrderStatus.CANCELLED)

    def test_terminal_states(self):
        update_order_status(self.order, OrderStatus.CANCELLED)
        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order, OrderStatus.PROCESSING)

    def test_tracking_requires_shipped(self):
        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order, tracking_number="RM123GB")
        self.assertIsNone(Order.objects.get(pk=self.order.pk).tracking_number)


class DeleteOrderTests(TestCase):
    def setUp(self):
        self.product = make_product(stock=7)
        self.promo = PromoCode.objects.create(code="FIVER", amount=Decimal("5"), redemptions=1)
        self.order = Order.objects.create(email="ada@example.com", promo_code=self.promo, promo_code_code="FIVER")
        OrderItem.objects.create(
            order=self.order,
            product=self.product,
            product_name=self.product.name,
            quantity=3,
            price_at_purchase=Decimal("30.00"),
        )
        OrderAppliedPromoCode.objects.create(order=self.order, promo_code=self.promo, code="FIVER", discount_type="FIXED")

    def test_restocks_when_deducting(self):
        delete_order(self.order)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 10)
        self.assertFalse(Order.objects.filter(pk=self.order.pk).exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertFalse(OrderAppliedPromoCode.objects.exists())

    def test_releases_reservation_when_order_reserved(self):
        self.order.stock_reserved = True
        self.order.save()
        self.product.reserved_stock = 2
        self.product.save()

        delete_order(self.order)

        self.product.refresh_from_db()
        self.assertEqual((self.product.stock, self.product.reserved_stock), (7, 0))

    def test_release_follows_policy_recorded_on_order(self):
        finalizer = OrderFinalizer(config_provider=lambda: False, notifier=mock.Mock())
        session = make_session(items=[{"productId": self.product.pk, "quantity": 3}], subtotal="90")
        order = finalizer.finalize(session).order
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 4)

        config = SiteConfig.load()
        config.auto_deduct_stock = True
        config.save()

        delete_order(order)

        self.product.refresh_from_db()
        self.assertEqual((self.product.stock, self.product.reserved_stock), (7, 0))

    def test_redemptions_are_not_decremented(self):
        delete_order(self.order)
        self.promo.refresh_from_db()
        self.assertEqual(self.promo.redemptions, 1)


class OrderAdminTests(TestCase):
    def setUp(self):
        self.model_admin = admin.site._registry[Order]
        staff = get_user_model().objects.create_superuser(username="boss", email="boss@example.com", password="x")
        self.request = RequestFactory().post("/admin/shop/order/")
        self.request.user = staff

        self.product = make_product(stock=7)
        self.order = Order.objects.create(email="ada@example.com", name="Ada", status=OrderStatus.PROCESSING)
        OrderItem.objects.create(
            order=self.order,
            product=self.product,
            product_name=self.product.name,
            quantity=3,
            price_at_purchase=Decimal("30.00"),
        )

    def form_data(self, **overrides):
        data = {
            "email": "ada@example.com",
            "name": "Ada",
            "address": "{}",
            "status": OrderStatus.PROCESSING,
            "tracking_number": "",
            "notes": "",
        }
        data.update(overrides)
        return data

    def test_delete_model_restocks(self):
        self.model_admin.delete_model(self.request, self.order)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 10)
        self.assertFalse(Order.objects.exists())

    def test_delete_queryset_restocks_every_order(self):
        second = Order.objects.create(email="grace@example.com")
        OrderItem.objects.create(
            order=second,
            product=self.product,
            product_name=self.product.name,
            quantity=2,
            price_at_purchase=Decimal("30.00"),
        )

        self.model_admin.delete_queryset(self.request, Order.objects.all())

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 12)
        self.assertFalse(Order.objects.exists())

    def test_form_rejects_disallowed_status_move(self):
        form = OrderAdminForm(data=self.form_data(status=OrderStatus.PENDING), instance=self.order)
        self.assertFalse(form.is_valid())

        form = OrderAdminForm(data=self.form_data(tracking_number="RM1"), instance=self.order)
        self.assertFalse(form.is_valid())

    def test_save_model_ships_through_status_rules(self):
        form = OrderAdminForm(
            data=self.form_data(status=OrderStatus.SHIPPED, tracking_number="RM1", notes="left at door"),
            instance=self.order,
        )
        self.assertTrue(form.is_valid(), form.errors)
        obj = form.save(commit=False)

        self.model_admin.save_model(self.request, obj, form, change=True)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.SHIPPED)
        self.assertEqual(self.order.tracking_number, "RM1")
        self.assertEqual(self.order.notes, "left at door")
        self.assertIsNotNone(self.order.shipped_at)
