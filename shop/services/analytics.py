"""
shop.services.analytics

Sales reporting for the admin dashboard.

Revenue per line item is the pre-discount line total scaled by the order's
total/subtotal ratio, so order-level discounts (promos) are spread across
items by their share of the subtotal. Cost basis is never discounted:
(cost_price + shipping_cost) * quantity.

Everything accumulates in Decimal; rounding happens once, in as_dict().

========= CHANGE LOG =========
2026-09-18 • ADD: CustomerKey (email | user | guest) instead of a bare string key.   # CHANGED:
             Guests still count as unique/new customers; guest_customers reports how many.
2026-09-18 • ADD: profit_periods() for the day/week/month/year/lifetime profit cards.  # CHANGED:
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

from django.conf import settings
from django.db.models import DecimalField, ExpressionWrapper, F, Prefetch, Sum
from django.utils import timezone

from shop.addresses import location_label
from shop.models import Order, OrderItem, OrderStatus, Product

log = logging.getLogger("storefront")

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

BEST_SELLER_LIMIT = 10
LOW_STOCK_LIMIT = 10

CUSTOMER_EMAIL = "email"
CUSTOMER_USER = "user"
CUSTOMER_GUEST = "guest"


def _r(amount: Decimal, places: str = "0.01") -> float:
    return float(amount.quantize(Decimal(places), rounding=ROUND_HALF_UP))


def _margin(profit: Decimal, revenue: Decimal) -> float:
    if revenue <= 0:
        return 0.0
    return _r(profit / revenue * HUNDRED, "0.1")


# --------------------------------------------------------------------------------------
# Customer identity
# --------------------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerKey:
    kind: str
    value: str

    @property
    def is_guest(self) -> bool:
        return self.kind == CUSTOMER_GUEST


def customer_key(order: Order) -> CustomerKey:
    """
    Email first (covers registered and guest checkouts alike), then the linked
    account, then a per-order key so emailless walk-ins never merge.
    """
    email = (order.email or "").strip().lower()
    if email:
        return CustomerKey(CUSTOMER_EMAIL, email)
    if order.user_id:
        return CustomerKey(CUSTOMER_USER, str(order.user_id))
    return CustomerKey(CUSTOMER_GUEST, f"{order.name or 'walk-in'}-{order.pk}")


# --------------------------------------------------------------------------------------
# Aggregation
# --------------------------------------------------------------------------------------


@dataclass
class ProductSales:
    name: str
    quantity: int = 0
    revenue: Decimal = ZERO
    cost: Decimal = ZERO
    profit: Decimal = ZERO


@dataclass
class AttributeSales:
    quantity: int = 0
    revenue: Decimal = ZERO
    orders: int = 0


@dataclass
class LocationSales:
    count: int = 0
    revenue: Decimal = ZERO


@dataclass
class SalesReport:
    total_revenue: Decimal = ZERO
    total_orders: int = 0
    revenue_by_day: Dict[str, Decimal] = field(default_factory=dict)
    orders_by_day: Dict[str, int] = field(default_factory=dict)
    orders_by_status: Dict[str, int] = field(default_factory=dict)
    products: Dict[str, ProductSales] = field(default_factory=dict)
    colors: Dict[str, AttributeSales] = field(default_factory=dict)
    sizes: Dict[str, AttributeSales] = field(default_factory=dict)
    locations: Dict[str, LocationSales] = field(default_factory=dict)
    customer_orders: Dict[CustomerKey, int] = field(default_factory=dict)

    @property
    def total_cost(self) -> Decimal:
        return sum((p.cost for p in self.products.values()), ZERO)

    @property
    def total_profit(self) -> Decimal:
        return sum((p.profit for p in self.products.values()), ZERO)

    @property
    def average_order_value(self) -> Decimal:
        if not self.total_orders:
            return ZERO
        return self.total_revenue / self.total_orders

    @property
    def unique_customers(self) -> int:
        return len(self.customer_orders)

    @property
    def returning_customers(self) -> int:
        return sum(1 for count in self.customer_orders.values() if count > 1)

    @property
    def new_customers(self) -> int:
        return self.unique_customers - self.returning_customers

    @property
    def guest_customers(self) -> int:
        return sum(1 for key in self.customer_orders if key.is_guest)

    def as_dict(self) -> Dict[str, Any]:
        revenue_chart = [
            {
                "date": day,
                "revenue": _r(self.revenue_by_day[day]),
                "orders": self.orders_by_day.get(day, 0),
            }
            for day in sorted(self.revenue_by_day)
        ]

        best_sellers = sorted(self.products.items(), key=lambda kv: kv[1].revenue, reverse=True)
        best_sellers = [
            {
                "id": pid,
                "name": p.name,
                "quantity": p.quantity,
                "revenue": _r(p.revenue),
                "cost": _r(p.cost),
                "profit": _r(p.profit),
                "profitMargin": _margin(p.profit, p.revenue),
            }
            for pid, p in best_sellers[:BEST_SELLER_LIMIT]
        ]

        def _attributes(data: Dict[str, AttributeSales], label: str) -> List[Dict[str, Any]]:
            rows = sorted(data.items(), key=lambda kv: kv[1].revenue, reverse=True)
            return [
                {label: key, "quantity": s.quantity, "revenue": _r(s.revenue), "orders": s.orders}
                for key, s in rows
            ]

        locations = sorted(self.locations.items(), key=lambda kv: kv[1].count, reverse=True)

        total_profit = self.total_profit
        return {
            "summary": {
                "totalRevenue": _r(self.total_revenue),
                "totalCost": _r(self.total_cost),
                "totalProfit": _r(total_profit),
                "profitMargin": _margin(total_profit, self.total_revenue),
                "totalOrders": self.total_orders,
                "averageOrderValue": _r(self.average_order_value),
                "uniqueCustomers": self.unique_customers,
                "newCustomers": self.new_customers,
                "returningCustomers": self.returning_customers,
                "guestCustomers": self.guest_customers,
            },
            "revenueChart": revenue_chart,
            "ordersByStatus": dict(self.orders_by_status),
            "bestSellers": best_sellers,
            "colorPerformance": _attributes(self.colors, "color"),
            "sizePerformance": _attributes(self.sizes, "size"),
            "locations": [
                {"country": label, "count": s.count, "revenue": _r(s.revenue)} for label, s in locations
            ],
        }


def _item_product(item: OrderItem) -> Optional[Product]:
    # product FK has no DB constraint; a deleted product must not break reporting
    try:
        return item.product
    except Product.DoesNotExist:
        return None


def _utc_day(ts: datetime) -> str:
    if timezone.is_naive(ts):
        return ts.date().isoformat()
    return ts.astimezone(dt_timezone.utc).date().isoformat()


def aggregate_sales(orders: Iterable[Order]) -> SalesReport:
    """Pure over already-loaded orders (items + products should be prefetched)."""
    report = SalesReport()

    for order in orders:
        total = order.total or ZERO
        subtotal = order.subtotal or ZERO
        ratio = total / subtotal if subtotal > 0 else ONE

        report.total_orders += 1
        report.total_revenue += total

        day = _utc_day(order.created_at)
        report.revenue_by_day[day] = report.revenue_by_day.get(day, ZERO) + total
        report.orders_by_day[day] = report.orders_by_day.get(day, 0) + 1
        report.orders_by_status[order.status] = report.orders_by_status.get(order.status, 0) + 1

        label = location_label(order)
        loc = report.locations.setdefault(label, LocationSales())
        loc.count += 1
        loc.revenue += total

        key = customer_key(order)
        report.customer_orders[key] = report.customer_orders.get(key, 0) + 1

        colors_in_order: Set[str] = set()
        sizes_in_order: Set[str] = set()

        for item in order.items.all():
            revenue = item.price_at_purchase * item.quantity * ratio

            product = _item_product(item)
            unit_cost = ZERO
            if product is not None:
                unit_cost = (product.cost_price or ZERO) + (product.shipping_cost or ZERO)
            cost = unit_cost * item.quantity

            pid = item.product_id or item.product_name
            sales = report.products.get(pid)
            if sales is None:
                sales = report.products[pid] = ProductSales(name=item.product_name)
            sales.quantity += item.quantity
            sales.revenue += revenue
            sales.cost += cost
            sales.profit += revenue - cost

            if item.color:
                color = report.colors.setdefault(item.color, AttributeSales())
                color.quantity += item.quantity
                color.revenue += revenue
                colors_in_order.add(item.color)

            if item.size:
                size = report.sizes.setdefault(item.size, AttributeSales())
                size.quantity += item.quantity
                size.revenue += revenue
                sizes_in_order.add(item.size)

        for color in colors_in_order:
            report.colors[color].orders += 1
        for size in sizes_in_order:
            report.sizes[size].orders += 1

    return report


# --------------------------------------------------------------------------------------
# Query-backed reports
# --------------------------------------------------------------------------------------


def _orders_with_items():
    return Order.objects.prefetch_related(
        Prefetch("items", queryset=OrderItem.objects.select_related("product"))
    )


def build_analytics_report(
    days: Optional[int] = None,
    product_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or timezone.now()
    if days is None:
        days = getattr(settings, "SHOP_ANALYTICS_DEFAULT_DAYS", 30)
    threshold = getattr(settings, "SHOP_LOW_STOCK_THRESHOLD", 5)

    qs = _orders_with_items().filter(created_at__gte=now - timedelta(days=days))
    if product_id:
        qs = qs.filter(items__product_id=product_id).distinct()

    report = aggregate_sales(qs.order_by("-created_at")).as_dict()

    inventory_value = (
        Product.objects.filter(is_active=True).aggregate(
            value=Sum(ExpressionWrapper(F("stock") * F("price"), output_field=DecimalField(max_digits=18, decimal_places=2)))
        )["value"]
        or ZERO
    )
    report["summary"]["inventoryValue"] = _r(Decimal(inventory_value))

    low_stock = Product.objects.filter(stock__gt=0, stock__lte=threshold).order_by("stock", "name")[:LOW_STOCK_LIMIT]
    report["lowStockProducts"] = [
        {"id": p.pk, "productName": p.name, "stock": p.stock, "price": _r(p.price)} for p in low_stock
    ]

    filtered = None
    if product_id:
        filtered = Product.objects.filter(pk=product_id).values("id", "name").first()
    report["filteredProduct"] = filtered

    log.info(
        "Storefront analytics: days=%s product=%s orders=%s",
        days,
        product_id or "-",
        report["summary"]["totalOrders"],
    )
    return report


PROFIT_PERIODS = ("day", "week", "month", "year", "lifetime")


def _period_starts(now: datetime) -> Dict[str, Optional[datetime]]:
    local = timezone.localtime(now) if timezone.is_aware(now) else now
    start_of_day = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "day": start_of_day,
        "week": start_of_day - timedelta(days=start_of_day.weekday()),
        "month": start_of_day.replace(day=1),
        "year": start_of_day.replace(month=1, day=1),
        "lifetime": None,
    }


def profit_periods(now: Optional[datetime] = None) -> Dict[str, Dict[str, float]]:
    """
    Revenue (order total) vs product cost_price for the profit cards.
    Cancelled orders are excluded.
    """
    starts = _period_starts(now or timezone.now())
    revenue = {key: ZERO for key in PROFIT_PERIODS}
    cost = {key: ZERO for key in PROFIT_PERIODS}

    orders = _orders_with_items().exclude(status=OrderStatus.CANCELLED)
    for order in orders:
        order_cost = ZERO
        for item in order.items.all():
            product = _item_product(item)
            if product is not None:
                order_cost += (product.cost_price or ZERO) * item.quantity

        for key in PROFIT_PERIODS:
            start = starts[key]
            if start is not None and order.created_at < start:
                continue
            revenue[key] += order.total or ZERO
            cost[key] += order_cost

    return {
        key: {
            "revenue": _r(revenue[key]),
            "cost": _r(cost[key]),
            "profit": _r(revenue[key] - cost[key]),
        }
        for key in PROFIT_PERIODS
    }
