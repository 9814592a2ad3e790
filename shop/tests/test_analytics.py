import json
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

from django.db.models import Prefetch
from django.test import TestCase

from shop.addresses import in_person_address
from shop.models import Order, OrderItem, OrderStatus
from shop.services.analytics import (
    CustomerKey,
    aggregate_sales,
    build_analytics_report,
    customer_key,
    profit_periods,
)
from shop.tests.helpers import make_product


def make_order(items=(), created_at=None, **fields):
    fields.setdefault("address", json.dumps({"country": "GB"}))
    order = Order.objects.create(**fields)
    for product, quantity, price, extra in items:
        OrderItem.objects.create(
            order=order,
            product_id=product if isinstance(product, str) else product.pk,
            product_name=extra.pop("name", getattr(product, "name", "Gone")),
            quantity=quantity,
            price_at_purchase=Decimal(price),
            **extra,
        )
    if created_at is not None:
        Order.objects.filter(pk=order.pk).update(created_at=created_at)
        order.refresh_from_db()
    return order


def loaded_orders():
    return Order.objects.prefetch_related(Prefetch("items", queryset=OrderItem.objects.select_related("product")))


class AggregateSalesTests(TestCase):
    def setUp(self):
        self.tee = make_product(name="Tee", price="30.00", stock=10, cost_price=Decimal("8.00"), shipping_cost=Decimal("2.00"))
        self.hoodie = make_product(name="Hoodie", price="40.00", stock=3, cost_price=Decimal("10.00"))

        # 20% promo on a 100.00 cart
        self.discounted = make_order(
            email="ada@example.com",
            subtotal=Decimal("100"),
            discount=Decimal("20"),
            total=Decimal("80"),
            items=[
                (self.tee, 2, "30.00", {"color": "Red", "size": "M"}),
                (self.hoodie, 1, "40.00", {"color": "Red", "size": "L"}),
            ],
        )
        self.repeat = make_order(
            email="ADA@example.com",
            subtotal=Decimal("30"),
            total=Decimal("30"),
            address=json.dumps({"countryCode": "US"}),
            items=[(self.tee, 1, "30.00", {"color": "Blue"})],
            status=OrderStatus.DELIVERED,
        )
        self.walk_in = make_order(
            name="Walk",
            subtotal=Decimal("40"),
            total=Decimal("40"),
            is_in_person=True,
            address=in_person_address("Market Stall"),
            items=[(self.hoodie, 1, "40.00", {})],
        )
        self.anonymous_walk_in = make_order(
            subtotal=Decimal("0"),
            total=Decimal("10"),
            is_in_person=True,
            address=in_person_address(),
        )
        self.unparsable_address = make_order(
            email="eve@example.com",
            subtotal=Decimal("20"),
            total=Decimal("20"),
            address="not json",
        )

        self.report = aggregate_sales(loaded_orders())
        self.data = self.report.as_dict()

    def test_proration_matches_order_total(self):
        tee = self.report.products[self.tee.pk]
        hoodie = self.report.products[self.hoodie.pk]

        # discounted order: 60 * 0.8 + 40 * 0.8; repeat + walk-in at full price
        self.assertEqual(tee.revenue, Decimal("48") + Decimal("30"))
        self.assertEqual(hoodie.revenue, Decimal("32") + Decimal("40"))

        discounted_revenue = sum(
            item.price_at_purchase * item.quantity * (self.discounted.total / self.discounted.subtotal)
            for item in self.discounted.items.all()
        )
        self.assertEqual(discounted_revenue, Decimal("80"))
        self.assertEqual(self.discounted.subtotal - discounted_revenue, Decimal("20"))

    def test_cost_is_not_discounted(self):
        tee = self.report.products[self.tee.pk]
        self.assertEqual(tee.quantity, 3)
        self.assertEqual(tee.cost, Decimal("30.00"))  # (8 + 2) * 3
        self.assertEqual(tee.profit, Decimal("48.00"))

        summary = self.data["summary"]
        self.assertEqual(summary["totalRevenue"], 180.0)
        self.assertEqual(summary["totalCost"], 50.0)
        self.assertEqual(summary["totalProfit"], 100.0)
        self.assertEqual(summary["profitMargin"], 55.6)
        self.assertEqual(summary["totalOrders"], 5)
        self.assertEqual(summary["averageOrderValue"], 36.0)

    def test_best_sellers_are_sorted_by_revenue(self):
        best = self.data["bestSellers"]
        self.assertEqual([row["name"] for row in best], ["Tee", "Hoodie"])
        self.assertEqual(best[0]["revenue"], 78.0)
        self.assertEqual(best[0]["profitMargin"], 61.5)

    def test_color_and_size_order_counts(self):
        colors = {row["color"]: row for row in self.data["colorPerformance"]}
        self.assertEqual(colors["Red"], {"color": "Red", "quantity": 3, "revenue": 80.0, "orders": 1})
        self.assertEqual(colors["Blue"]["orders"], 1)

        sizes = {row["size"]: row for row in self.data["sizePerformance"]}
        self.assertEqual(set(sizes), {"M", "L"})
        self.assertEqual(sizes["M"]["revenue"], 48.0)

    def test_location_labels(self):
        locations = {row["country"]: row["count"] for row in self.data["locations"]}
        self.assertEqual(
            locations,
            {"GB": 1, "US": 1, "Market Stall": 1, "In-Person": 1, "Unknown": 1},
        )

    def test_customer_classification(self):
        summary = self.data["summary"]
        self.assertEqual(summary["uniqueCustomers"], 4)
        self.assertEqual(summary["returningCustomers"], 1)
        self.assertEqual(summary["newCustomers"], 3)
        self.assertEqual(summary["guestCustomers"], 2)

    def test_customer_key_kinds(self):
        self.assertEqual(customer_key(self.repeat), CustomerKey("email", "ada@example.com"))
        self.assertEqual(customer_key(self.walk_in), CustomerKey("guest", f"Walk-{self.walk_in.pk}"))
        self.assertEqual(
            customer_key(self.anonymous_walk_in),
            CustomerKey("guest", f"walk-in-{self.anonymous_walk_in.pk}"),
        )

    def test_orders_by_status(self):
        self.assertEqual(self.data["ordersByStatus"], {OrderStatus.PENDING: 4, OrderStatus.DELIVERED: 1})


class AggregateEdgeCaseTests(TestCase):
    def test_empty_input(self):
        data = aggregate_sales([]).as_dict()
        self.assertEqual(data["summary"]["totalRevenue"], 0.0)
        self.assertEqual(data["summary"]["profitMargin"], 0.0)
        self.assertEqual(data["summary"]["averageOrderValue"], 0.0)
        self.assertEqual(data["bestSellers"], [])

    def test_deleted_product_counts_revenue_without_cost(self):
        make_order(
            email="ada@example.com",
            subtotal=Decimal("15"),
            total=Decimal("15"),
            items=[("deleted-product-id", 1, "15.00", {"name": "Old Mug"})],
        )
        report = aggregate_sales(loaded_orders())

        mug = report.products["deleted-product-id"]
        self.assertEqual((mug.revenue, mug.cost), (Decimal("15"), Decimal("0")))

    def test_user_key_when_no_email(self):
        from django.contrib.auth import get_user_model

        user = get_user_model().objects.create_user(username="ada", password="x")
        order = make_order(user=user)
        self.assertEqual(customer_key(order), CustomerKey("user", str(user.pk)))

    def test_revenue_chart_uses_utc_day(self):
        late = datetime(2026, 3, 1, 23, 30, tzinfo=dt_timezone.utc)
        make_order(subtotal=Decimal("10"), total=Decimal("10"), created_at=late)
        make_order(subtotal=Decimal("5"), total=Decimal("5"), created_at=late + timedelta(hours=1))

        chart = aggregate_sales(loaded_orders()).as_dict()["revenueChart"]
        self.assertEqual(
            chart,
            [
                {"date": "2026-03-01", "revenue": 10.0, "orders": 1},
                {"date": "2026-03-02", "revenue": 5.0, "orders": 1},
            ],
        )


class AnalyticsReportTests(TestCase):
    def setUp(self):
        self.now = datetime(2026, 10, 14, 12, 0, tzinfo=dt_timezone.utc)
        self.tee = make_product(name="Tee", price="30.00", stock=10)
        self.hoodie = make_product(name="Hoodie", price="40.00", stock=3)
        make_product(name="Retired", price="99.00", stock=4, is_active=False)
        make_product(name="Sold out", price="5.00", stock=0)

        self.recent = make_order(
            subtotal=Decimal("30"), total=Decimal("30"),
            items=[(self.tee, 1, "30.00", {})],
            created_at=self.now - timedelta(days=2),
        )
        self.recent_hoodie = make_order(
            subtotal=Decimal("40"), total=Decimal("40"),
            items=[(self.hoodie, 1, "40.00", {})],
            created_at=self.now - timedelta(days=3),
        )
        make_order(
            subtotal=Decimal("30"), total=Decimal("30"),
            items=[(self.tee, 1, "30.00", {})],
            created_at=self.now - timedelta(days=60),
        )

    def test_window_and_inventory(self):
        report = build_analytics_report(days=30, now=self.now)

        self.assertEqual(report["summary"]["totalOrders"], 2)
        self.assertEqual(report["summary"]["inventoryValue"], 420.0)  # 10*30 + 3*40
        self.assertIsNone(report["filteredProduct"])

        low = report["lowStockProducts"]
        self.assertEqual([p["productName"] for p in low], ["Hoodie", "Retired"])
        self.assertEqual(low[0]["stock"], 3)

    def test_product_filter(self):
        report = build_analytics_report(days=90, product_id=self.tee.pk, now=self.now)

        self.assertEqual(report["summary"]["totalOrders"], 2)
        self.assertEqual(report["filteredProduct"], {"id": self.tee.pk, "name": "Tee"})
        self.assertEqual([row["name"] for row in report["bestSellers"]], ["Tee"])


class ProfitPeriodTests(TestCase):
    def test_period_buckets(self):
        now = datetime(2026, 10, 14, 12, 0, tzinfo=dt_timezone.utc)  # a Wednesday
        product = make_product(price="10.00", cost_price=Decimal("4.00"), shipping_cost=Decimal("1.00"))

        def sale(created_at, **extra):
            make_order(
                subtotal=Decimal("10"), total=Decimal("10"),
                items=[(product, 1, "10.00", {})],
                created_at=created_at,
                **extra,
            )

        sale(now - timedelta(hours=1))
        sale(datetime(2026, 10, 12, 9, 0, tzinfo=dt_timezone.utc))  # Monday
        sale(datetime(2026, 10, 1, 9, 0, tzinfo=dt_timezone.utc))
        sale(datetime(2026, 2, 1, 9, 0, tzinfo=dt_timezone.utc))
        sale(datetime(2024, 5, 1, 9, 0, tzinfo=dt_timezone.utc))
        sale(now - timedelta(hours=2), status=OrderStatus.CANCELLED)

        periods = profit_periods(now=now)

        self.assertEqual(periods["day"], {"revenue": 10.0, "cost": 4.0, "profit": 6.0})
        self.assertEqual(periods["week"]["revenue"], 20.0)
        self.assertEqual(periods["month"]["revenue"], 30.0)
        self.assertEqual(periods["year"]["revenue"], 40.0)
        self.assertEqual(periods["lifetime"], {"revenue": 50.0, "cost": 20.0, "profit": 30.0})
