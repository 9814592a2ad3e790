from .admin_api import (
    AdminOrderDetailView,
    AdminOrderListView,
    AnalyticsView,
    InPersonSaleDetailView,
    InPersonSaleView,
    OrderProfitsView,
)
from .orders import ConfirmOrderView
from .promo_codes import PromoValidateView
from .stripe_webhook import stripe_webhook

__all__ = [
    "AdminOrderDetailView",
    "AdminOrderListView",
    "AnalyticsView",
    "ConfirmOrderView",
    "InPersonSaleDetailView",
    "InPersonSaleView",
    "OrderProfitsView",
    "PromoValidateView",
    "stripe_webhook",
]
