"""
shop.views.orders

POST /api/orders/confirm/  {sessionId}

Success-page confirmation. The browser usually lands here before Stripe's
webhook arrives; both paths go through the same idempotent finalizer, so
whichever runs second just gets the existing order back.
"""

from __future__ import annotations

import logging

import stripe
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from shop.serializers import ConfirmOrderSerializer
from shop.services.finalize import finalize_checkout_session

log = logging.getLogger("storefront")


class ConfirmOrderView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = ConfirmOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session_id = serializer.validated_data["sessionId"]

        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                api_key=settings.STRIPE_SECRET_KEY,
                stripe_version=settings.STRIPE_API_VERSION,
            )
        except stripe.InvalidRequestError:
            log.warning("Storefront confirm: unknown checkout session=%s", session_id)
            return Response({"error": "Checkout session not found."}, status=status.HTTP_404_NOT_FOUND)
        except stripe.StripeError:
            log.exception("Storefront confirm: Stripe lookup failed session=%s", session_id)
            return Response({"error": "Failed to confirm order"}, status=status.HTTP_502_BAD_GATEWAY)

        user_id = request.user.pk if request.user.is_authenticated else None
        result = finalize_checkout_session(session, fallback_user_id=user_id)

        return Response(
            {"success": True, "created": result.created, "orderId": result.order.pk},
            status=status.HTTP_200_OK,
        )
