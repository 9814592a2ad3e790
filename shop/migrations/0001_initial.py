from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

import shop.models.base


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("id", models.CharField(default=shop.models.base.new_id, editable=False, max_length=40, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Unit cost used for profit reporting.", max_digits=12)),
                ("shipping_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Per-unit inbound shipping, added to cost basis.", max_digits=12)),
                ("images", models.JSONField(blank=True, default=list, help_text="List of image URLs")),
                ("stock", models.IntegerField(default=0)),
                ("reserved_stock", models.PositiveIntegerField(default=0, help_text="Units set aside for placed orders while still counted in stock.")),
            ],
            options={
                "ordering": ("name",),
                "indexes": [models.Index(fields=["stock"], name="shop_product_stock_idx")],
            },
        ),
        migrations.CreateModel(
            name="PromoCode",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("id", models.CharField(default=shop.models.base.new_id, editable=False, max_length=40, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=64, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("discount_type", models.CharField(choices=[("PERCENTAGE", "Percentage"), ("FIXED", "Fixed amount")], default="PERCENTAGE", max_length=16)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Percentage (0-100) or fixed currency amount, depending on discount type.", max_digits=12)),
                ("minimum_order_value", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("max_redemptions", models.PositiveIntegerField(blank=True, null=True)),
                ("redemptions", models.PositiveIntegerField(default=0)),
                ("starts_at", models.DateTimeField(blank=True, null=True)),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="SiteConfig",
            fields=[
                ("id", models.CharField(default="main", editable=False, max_length=16, primary_key=True, serialize=False)),
                ("auto_deduct_stock", models.BooleanField(default=False, help_text="On: placed orders reserve stock (reserved_stock += qty) until released. Off: placed orders deduct stock immediately.")),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Site configuration",
                "verbose_name_plural": "Site configuration",
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.CharField(default=shop.models.base.new_id, editable=False, max_length=40, primary_key=True, serialize=False)),
                ("email", models.EmailField(blank=True, db_index=True, max_length=254, null=True)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("address", models.TextField(blank=True, default="{}", help_text="Serialized JSON; postal address (online) or {type: in-person, location} (POS).")),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("shipping", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PROCESSING", "Processing"), ("SHIPPED", "Shipped"), ("DELIVERED", "Delivered"), ("CANCELLED", "Cancelled")], db_index=True, default="PENDING", max_length=16)),
                ("tracking_number", models.CharField(blank=True, max_length=128, null=True)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("is_in_person", models.BooleanField(db_index=True, default=False)),
                ("stripe_payment_id", models.CharField(blank=True, help_text="Stripe PaymentIntent id (pi_...) or Checkout Session id (cs_...) as fallback.", max_length=255, null=True, unique=True)),
                ("promo_code_code", models.CharField(blank=True, max_length=64, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("promo_code", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="orders", to="shop.promocode")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="shop_orders", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [models.Index(fields=["status", "created_at"], name="shop_order_status_created_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_name", models.CharField(max_length=200)),
                ("product_image", models.CharField(blank=True, max_length=500, null=True)),
                ("quantity", models.PositiveIntegerField()),
                ("size", models.CharField(blank=True, max_length=32, null=True)),
                ("color", models.CharField(blank=True, max_length=64, null=True)),
                ("price_at_purchase", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Unit price snapshot; never recomputed.", max_digits=12)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="shop.order")),
                ("product", models.ForeignKey(blank=True, db_constraint=False, null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name="+", to="shop.product")),
            ],
            options={
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="OrderAppliedPromoCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=64)),
                ("discount_type", models.CharField(choices=[("PERCENTAGE", "Percentage"), ("FIXED", "Fixed amount")], max_length=16)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Rate or value of the promo at time of use.", max_digits=12)),
                ("discount_applied", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Currency amount this promo took off this order.", max_digits=12)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applied_promo_codes", to="shop.order")),
                ("promo_code", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="applications", to="shop.promocode")),
            ],
            options={
                "ordering": ("id",),
            },
        ),
    ]
