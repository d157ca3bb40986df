"""
======================================================
PATH: products/views/stock_movement.py
======================================================
STOCK MOVEMENT LEDGER (READ-ONLY)

GET /api/inventory/stock-movements/?branchId=&dateFrom=&dateTo=&productId=&type=

- branchId is required (movements are branch-scoped)
- dates are inclusive YYYY-MM-DD
- newest first, paginated
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, serializers, viewsets
from rest_framework.permissions import IsAuthenticated

from permissions.roles import CAP_AUDIT_VIEW, CAP_INVENTORY_VIEW, HasAnyCapability
from products.models import StockMovement
from products.serializers import StockMovementSerializer
from products.services.stock_ledger import list_movements
from sales.api.errors import ledger_error_response, serializer_error_response
from sales.services.exceptions import BranchRequired


class MovementQuerySerializer(serializers.Serializer):
    branchId = serializers.UUIDField()
    dateFrom = serializers.DateField(required=False, allow_null=True, default=None)
    dateTo = serializers.DateField(required=False, allow_null=True, default=None)
    productId = serializers.UUIDField(required=False, allow_null=True, default=None)
    type = serializers.ChoiceField(
        choices=StockMovement.MovementType.choices,
        required=False,
        allow_null=True,
        default=None,
    )


class StockMovementViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated, HasAnyCapability]
    required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_AUDIT_VIEW}

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return StockMovement.objects.none()

        v = self.query.validated_data
        return list_movements(
            branch=v["branchId"],
            date_from=v.get("dateFrom"),
            date_to=v.get("dateTo"),
            product=v.get("productId"),
            movement_type=v.get("type"),
        )

    @extend_schema(
        parameters=[
            OpenApiParameter("branchId", str, required=True),
            OpenApiParameter("dateFrom", str, description="YYYY-MM-DD (inclusive)"),
            OpenApiParameter("dateTo", str, description="YYYY-MM-DD (inclusive)"),
            OpenApiParameter("productId", str),
            OpenApiParameter("type", str, description="IN / OUT / RETURN / ADJUSTMENT"),
        ],
    )
    def list(self, request, *args, **kwargs):
        if not (request.query_params.get("branchId") or "").strip():
            return ledger_error_response(
                BranchRequired("branchId query parameter is required"),
                action="list_movements",
            )

        self.query = MovementQuerySerializer(data=request.query_params)
        if not self.query.is_valid():
            return serializer_error_response(self.query.errors, action="list_movements")

        return super().list(request, *args, **kwargs)
