"""
shop.serializers

Request validation (plain Serializers) and response shapes (ModelSerializers)
for the storefront JSON API. Field names follow the storefront's camelCase
wire format.
"""

from rest_framework import serializers

from shop.models import Order, OrderAppliedPromoCode, OrderItem, OrderStatus


# ---- inputs ----


class ConfirmOrderSerializer(serializers.Serializer):
    sessionId = serializers.CharField(max_length=255, trim_whitespace=True)


class PromoValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64, trim_whitespace=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class OrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    trackingNumber = serializers.CharField(max_length=128, required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if not attrs.get("status") and not attrs.get("trackingNumber"):
            raise serializers.ValidationError("Provide status and/or trackingNumber.")
        return attrs


class InPersonItemSerializer(serializers.Serializer):
    productId = serializers.CharField(max_length=40)
    quantity = serializers.IntegerField(min_value=1)
    productName = serializers.CharField(max_length=200, required=False, allow_blank=True)
    size = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class InPersonSaleSerializer(serializers.Serializer):
    customerName = serializers.CharField(max_length=255)
    customerEmail = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    customerLocation = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    items = InPersonItemSerializer(many=True, allow_empty=False)


class AnalyticsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=3650, required=False)
    product = serializers.CharField(max_length=40, required=False, allow_blank=True)


# ---- outputs ----


class OrderItemSerializer(serializers.ModelSerializer):
    productId = serializers.CharField(source="product_id", allow_null=True)
    productName = serializers.CharField(source="product_name")
    productImage = serializers.CharField(source="product_image", allow_null=True)
    priceAtPurchase = serializers.DecimalField(source="price_at_purchase", max_digits=12, decimal_places=2)

    class Meta:
        model = OrderItem
        fields = ["id", "productId", "productName", "productImage", "quantity", "size", "color", "priceAtPurchase"]


class AppliedPromoSerializer(serializers.ModelSerializer):
    promoCodeId = serializers.CharField(source="promo_code_id", allow_null=True)
    discountType = serializers.CharField(source="discount_type")
    discountApplied = serializers.DecimalField(source="discount_applied", max_digits=12, decimal_places=2)

    class Meta:
        model = OrderAppliedPromoCode
        fields = ["id", "promoCodeId", "code", "discountType", "amount", "discountApplied"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    appliedPromoCodes = AppliedPromoSerializer(source="applied_promo_codes", many=True, read_only=True)
    trackingNumber = serializers.CharField(source="tracking_number", allow_null=True)
    shippedAt = serializers.DateTimeField(source="shipped_at", allow_null=True)
    isInPerson = serializers.BooleanField(source="is_in_person")
    promoCode = serializers.CharField(source="promo_code_code", allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Order
        fields = [
            "id",
            "email",
            "name",
            "address",
            "subtotal",
            "discount",
            "shipping",
            "tax",
            "total",
            "status",
            "trackingNumber",
            "shippedAt",
            "isInPerson",
            "promoCode",
            "items",
            "appliedPromoCodes",
            "createdAt",
            "updatedAt",
        ]
