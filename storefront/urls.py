"""
URL configuration for the storefront project.

/admin/  Django admin (products, promo codes, site config, orders)
/api/    shop JSON API + Stripe webhook
"""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("shop.urls")),
]
