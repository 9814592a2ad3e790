from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from shop.serializers import PromoValidateSerializer
from shop.services.promo_codes import find_promo_code, validate_promo


class PromoValidateView(APIView):
    """
    POST /api/promocodes/validate/ {code, subtotal}
    Checkout-time preview of what a code takes off; nothing is reserved or counted.
    """

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = PromoValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        code = serializer.validated_data["code"]
        subtotal = serializer.validated_data["subtotal"]

        promo = find_promo_code(code)
        result = validate_promo(promo, subtotal)
        if not result.valid:
            return Response({"error": result.reason or "Invalid promo code"}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {
                "promo": {
                    "id": promo.pk,
                    "code": promo.code,
                    "description": promo.description,
                    "discountType": promo.discount_type,
                    "amount": str(promo.amount),
                    "discountAmount": f"{result.discount_amount:.2f}",
                    "minimumOrderValue": str(promo.minimum_order_value) if promo.minimum_order_value is not None else None,
                    "maxRedemptions": promo.max_redemptions,
                    "redemptions": promo.redemptions,
                    "active": promo.is_active,
                    "startsAt": promo.starts_at,
                    "endsAt": promo.ends_at,
                }
            },
            status=status.HTTP_200_OK,
        )
