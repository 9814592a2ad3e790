"""
Storefront - Django Admin Registrations

========= CHANGE LOG =========
2026-10-16 • Order deletes go through delete_order (restock); status edits follow ALLOWED_TRANSITIONS.  # CHANGED:
2026-08-21 • Order admin shows the applied promo ledger inline (read-only snapshot).  # CHANGED:
2026-07-30 • Register Product, PromoCode, SiteConfig and Order (with line items).
"""

from __future__ import annotations

from django import forms
from django.contrib import admin

from shop.exceptions import InvalidStatusTransition
from shop.models import Order, OrderAppliedPromoCode, OrderItem, Product, PromoCode, SiteConfig
from shop.services.admin_orders import check_status_transition, delete_order, update_order_status


# --------------------------------------------------------------------------------------
# Catalog
# --------------------------------------------------------------------------------------


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "cost_price", "stock", "reserved_stock", "is_active", "updated_at")
    search_fields = ("name", "id")
    list_filter = ("is_active",)
    ordering = ("name",)


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_type", "amount", "redemptions", "max_redemptions", "is_active", "ends_at")
    search_fields = ("code", "description")
    list_filter = ("discount_type", "is_active")
    readonly_fields = ("redemptions",)
    ordering = ("code",)


@admin.register(SiteConfig)
class SiteConfigAdmin(admin.ModelAdmin):
    list_display = ("id", "auto_deduct_stock", "updated_at")

    def has_add_permission(self, request):
        # Single row ("main"); created on first load.
        return not SiteConfig.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


# --------------------------------------------------------------------------------------
# Orders
# --------------------------------------------------------------------------------------


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product_name", "quantity", "size", "color", "price_at_purchase")
    readonly_fields = fields
    can_delete = False


class OrderAppliedPromoCodeInline(admin.TabularInline):
    model = OrderAppliedPromoCode
    extra = 0
    fields = ("code", "discount_type", "amount", "discount_applied", "promo_code")
    readonly_fields = fields
    can_delete = False


class OrderAdminForm(forms.ModelForm):
    """Status and tracking edits follow the same moves as the staff API."""

    class Meta:
        model = Order
        fields = ("email", "name", "address", "status", "tracking_number", "notes")

    def clean(self):
        cleaned = super().clean()
        if self.instance.pk is None or not {"status", "tracking_number"} & set(self.changed_data):
            return cleaned

        original = Order.objects.get(pk=self.instance.pk)
        target = cleaned.get("status") or original.status
        tracking = (cleaned.get("tracking_number") or "").strip() or None
        if "tracking_number" not in self.changed_data:
            tracking = None
        try:
            check_status_transition(original.status, target, tracking)
        except InvalidStatusTransition as e:
            raise forms.ValidationError(str(e))
        return cleaned


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    form = OrderAdminForm
    list_display = ("id", "email", "name", "status", "total", "is_in_person", "promo_code_code", "created_at")
    search_fields = ("id", "email", "name", "stripe_payment_id", "tracking_number")
    list_filter = ("status", "is_in_person")
    ordering = ("-created_at",)
    readonly_fields = (
        "stripe_payment_id",
        "subtotal",
        "discount",
        "shipping",
        "tax",
        "total",
        "promo_code",
        "promo_code_code",
        "is_in_person",
        "stock_reserved",
        "shipped_at",
        "created_at",
        "updated_at",
    )
    inlines = (OrderItemInline, OrderAppliedPromoCodeInline)

    def save_model(self, request, obj, form, change):
        moved = change and {"status", "tracking_number"} & set(form.changed_data)
        if not moved:
            super().save_model(request, obj, form, change)
            return

        status, tracking = obj.status, obj.tracking_number
        original = Order.objects.get(pk=obj.pk)
        obj.status, obj.tracking_number = original.status, original.tracking_number
        super().save_model(request, obj, form, change)
        update_order_status(
            obj,
            status=status,
            tracking_number=tracking if "tracking_number" in form.changed_data else None,
        )

    def delete_model(self, request, obj):
        delete_order(obj)

    def delete_queryset(self, request, queryset):
        for order in queryset.prefetch_related("items"):
            delete_order(order)
