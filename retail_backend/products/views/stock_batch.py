"""
======================================================
PATH: products/views/stock_batch.py
======================================================
STOCK BATCH VIEWSET

Purpose:
- Batch query interface (FEFO-ordered in-stock batches of a product at a branch)
- FEFO selection preview
- Manual stock adjustment (audited, ADJUSTMENT movement)

Quantity is never edited directly: there is no create/update/delete here.
Stock arrives through receive_batch() and leaves through the sale manager.
"""

from __future__ import annotations

from django.db import DatabaseError
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_VIEW,
    HasAnyCapability,
    HasCapability,
)
from products.models import StockBatch
from products.serializers import (
    BatchAdjustInputSerializer,
    BatchListQuerySerializer,
    BatchSelectQuerySerializer,
    StockBatchSerializer,
)
from products.services.batch_selector import allocate, list_batches, select_batch
from products.services.stock_adjustments import adjust_stock_batch
from sales.api.errors import (
    ledger_error_response,
    serializer_error_response,
    service_unavailable_response,
)
from sales.services.exceptions import LedgerError


class StockBatchViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = StockBatchSerializer
    permission_classes = [IsAuthenticated]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action == "adjust":
            self.required_capability = CAP_INVENTORY_ADJUST
            return [IsAuthenticated(), HasCapability()]

        self.required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_INVENTORY_ADJUST}
        return [IsAuthenticated(), HasAnyCapability()]

    def get_queryset(self):
        return StockBatch.objects.select_related("product", "branch").order_by("expiry_date", "created_at")

    # -------------------------------------------------
    # LIST (batch query interface)
    # -------------------------------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter("productId", str, required=True),
            OpenApiParameter("branchId", str, required=True),
            OpenApiParameter("excludeExpired", bool, description="Drop batches past their expiry date"),
        ],
        responses={200: StockBatchSerializer(many=True)},
    )
    def list(self, request, *args, **kwargs):
        query = BatchListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return serializer_error_response(query.errors, action="list_batches")

        v = query.validated_data
        batches = list_batches(
            v["productId"],
            v["branchId"],
            exclude_expired=v.get("excludeExpired", False),
        )
        return Response(StockBatchSerializer(batches, many=True).data)

    # -------------------------------------------------
    # FEFO PREVIEW
    # -------------------------------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter("productId", str, required=True),
            OpenApiParameter("branchId", str, required=True),
            OpenApiParameter("quantity", int),
            OpenApiParameter("batchId", str, description="Optional explicit batch override"),
        ],
        description=(
            "Preview which batch FEFO would draw from and how a quantity would be "
            "split. available=false is a normal outcome (nothing in stock)."
        ),
    )
    @action(detail=False, methods=["get"], url_path="select")
    def select(self, request):
        query = BatchSelectQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return serializer_error_response(query.errors, action="select_batch")

        v = query.validated_data
        chosen = select_batch(
            v["productId"],
            v["branchId"],
            quantity=v["quantity"],
            batch=v.get("batchId"),
        )
        plan = allocate(
            product=v["productId"],
            branch=v["branchId"],
            quantity=v["quantity"],
            batch=v.get("batchId"),
        )

        return Response(
            {
                "available": chosen is not None,
                "batch": StockBatchSerializer(chosen).data if chosen is not None else None,
                "canFulfil": bool(plan),
                "plan": [
                    {
                        "batchId": str(draw.batch.pk),
                        "batchNo": draw.batch.batch_number,
                        "quantity": draw.quantity,
                    }
                    for draw in plan
                ],
            }
        )

    # -------------------------------------------------
    # MANUAL ADJUSTMENT
    # -------------------------------------------------
    @extend_schema(
        request=BatchAdjustInputSerializer,
        responses={200: StockBatchSerializer},
    )
    @action(detail=True, methods=["post"], url_path="adjust")
    def adjust(self, request, pk=None):
        batch = self.get_object()

        payload = BatchAdjustInputSerializer(data=request.data)
        if not payload.is_valid():
            return serializer_error_response(payload.errors, action="adjust_batch")

        try:
            result = adjust_stock_batch(
                batch=batch,
                quantity_delta=payload.validated_data["quantityDelta"],
                user=request.user,
                reason=payload.validated_data["reason"],
            )
        except LedgerError as exc:
            return ledger_error_response(exc, action="adjust_batch")
        except DatabaseError:
            return service_unavailable_response(action="adjust_batch")

        return Response(StockBatchSerializer(result.batch).data, status=status.HTTP_200_OK)
