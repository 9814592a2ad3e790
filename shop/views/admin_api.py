"""
shop.views.admin_api

Staff-only JSON endpoints (IsAdminUser is the project default permission).

GET          /api/admin/analytics/?days=&product=
GET          /api/admin/orders/
GET          /api/admin/orders/profits/
GET|PATCH|DELETE /api/admin/orders/<id>/
GET|POST     /api/admin/in-person-sale/
PUT|DELETE   /api/admin/in-person-sale/<id>/   (404 for online orders)
"""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from shop.exceptions import ShopError
from shop.models import Order
from shop.serializers import (
    AnalyticsQuerySerializer,
    InPersonSaleSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
)
from shop.services.admin_orders import delete_order, update_order_status
from shop.services.analytics import build_analytics_report, profit_periods
from shop.services.in_person import (
    delete_in_person_sale,
    record_in_person_sale,
    recent_in_person_sales,
    update_in_person_sale,
)

log = logging.getLogger("storefront")


def _shop_error(exc: ShopError) -> Response:
    return Response({"error": str(exc), "code": exc.code}, status=status.HTTP_400_BAD_REQUEST)


class AnalyticsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        query = AnalyticsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        report = build_analytics_report(
            days=query.validated_data.get("days"),
            product_id=query.validated_data.get("product") or None,
        )
        return Response(report, status=status.HTTP_200_OK)


class OrderProfitsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        return Response({"periods": profit_periods()}, status=status.HTTP_200_OK)


class AdminOrderListView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        orders = Order.objects.prefetch_related("items", "applied_promo_codes").order_by("-created_at")
        return Response({"orders": OrderSerializer(orders, many=True).data}, status=status.HTTP_200_OK)


class AdminOrderDetailView(APIView):
    permission_classes = [IsAdminUser]

    def _get_order(self, order_id: str) -> Order:
        return get_object_or_404(Order.objects.prefetch_related("items", "applied_promo_codes"), pk=order_id)

    def get(self, request, order_id: str, *args, **kwargs):
        return Response({"order": OrderSerializer(self._get_order(order_id)).data})

    def patch(self, request, order_id: str, *args, **kwargs):
        order = self._get_order(order_id)
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            update_order_status(
                order,
                status=serializer.validated_data.get("status"),
                tracking_number=serializer.validated_data.get("trackingNumber"),
            )
        except ShopError as e:
            return _shop_error(e)

        return Response({"order": OrderSerializer(order).data}, status=status.HTTP_200_OK)

    def delete(self, request, order_id: str, *args, **kwargs):
        order = self._get_order(order_id)
        delete_order(order)
        return Response({"success": True}, status=status.HTTP_200_OK)


class InPersonSaleView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        orders = recent_in_person_sales()
        return Response({"orders": OrderSerializer(orders, many=True).data}, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = InPersonSaleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = record_in_person_sale(
                customer_name=data["customerName"],
                items=data["items"],
                customer_email=data.get("customerEmail"),
                customer_location=data.get("customerLocation"),
            )
        except ShopError as e:
            return _shop_error(e)

        order = Order.objects.prefetch_related("items", "applied_promo_codes").get(pk=order.pk)
        return Response({"order": OrderSerializer(order).data}, status=status.HTTP_201_CREATED)


class InPersonSaleDetailView(APIView):
    permission_classes = [IsAdminUser]

    def _get_sale(self, order_id: str):
        return (
            Order.objects.prefetch_related("items")
            .filter(pk=order_id, is_in_person=True)
            .first()
        )

    def put(self, request, order_id: str, *args, **kwargs):
        order = self._get_sale(order_id)
        if order is None:
            return Response({"error": "Sale not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = InPersonSaleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            update_in_person_sale(
                order,
                customer_name=data["customerName"],
                items=data["items"],
                customer_email=data.get("customerEmail"),
                customer_location=data.get("customerLocation"),
            )
        except ShopError as e:
            return _shop_error(e)

        order = Order.objects.prefetch_related("items", "applied_promo_codes").get(pk=order.pk)
        return Response({"order": OrderSerializer(order).data}, status=status.HTTP_200_OK)

    def delete(self, request, order_id: str, *args, **kwargs):
        order = self._get_sale(order_id)
        if order is None:
            return Response({"error": "Sale not found"}, status=status.HTTP_404_NOT_FOUND)

        delete_in_person_sale(order)
        return Response({"success": True}, status=status.HTTP_200_OK)
