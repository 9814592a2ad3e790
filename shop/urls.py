from django.urls import path

from shop import views

urlpatterns = [
    path("webhooks/stripe/", views.stripe_webhook, name="shop-stripe-webhook"),
    path("orders/confirm/", views.ConfirmOrderView.as_view(), name="shop-order-confirm"),
    path("promocodes/validate/", views.PromoValidateView.as_view(), name="shop-promo-validate"),
    path("admin/analytics/", views.AnalyticsView.as_view(), name="shop-admin-analytics"),
    path("admin/orders/", views.AdminOrderListView.as_view(), name="shop-admin-orders"),
    path("admin/orders/profits/", views.OrderProfitsView.as_view(), name="shop-admin-order-profits"),
    path("admin/orders/<str:order_id>/", views.AdminOrderDetailView.as_view(), name="shop-admin-order"),
    path("admin/in-person-sale/", views.InPersonSaleView.as_view(), name="shop-admin-in-person-sale"),
    path(
        "admin/in-person-sale/<str:order_id>/",
        views.InPersonSaleDetailView.as_view(),
        name="shop-admin-in-person-sale-detail",
    ),
]
