# sales/api/viewsets/refund.py

"""
======================================================
PATH: sales/api/viewsets/refund.py
======================================================
REFUND VIEWSET (STAFF)

- POST /api/sales/refunds/       partial or full refund of a completed sale
- GET  /api/sales/refunds/       refund history (?saleId=, ?branchId=)
- GET  /api/sales/refunds/{id}/  one refund with its lines

Security:
- create requires pos.refund
- list / retrieve require pos.refund OR reports.view_pos
======================================================
"""

from __future__ import annotations

import uuid

from django.db import DatabaseError
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, serializers, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_POS_REFUND,
    CAP_REPORTS_VIEW_POS,
    HasAnyCapability,
    HasCapability,
)
from sales.api.errors import (
    ledger_error_response,
    serializer_error_response,
    service_unavailable_response,
)
from sales.models import Refund
from sales.serializers import RefundCommandSerializer, RefundSerializer
from sales.services.exceptions import LedgerError
from sales.services.refund_service import create_refund


def _parse_uuid(s: str):
    try:
        return uuid.UUID(s)
    except ValueError:
        return None


class RefundResultSerializer(serializers.Serializer):
    refundId = serializers.UUIDField()
    totalRefunded = serializers.DecimalField(max_digits=12, decimal_places=2)
    saleStatus = serializers.CharField()


class RefundViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = RefundSerializer
    permission_classes = [IsAuthenticated]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action == "create":
            self.required_capability = CAP_POS_REFUND
            return [IsAuthenticated(), HasCapability()]

        self.required_any_capabilities = {CAP_POS_REFUND, CAP_REPORTS_VIEW_POS}
        return [IsAuthenticated(), HasAnyCapability()]

    def get_serializer_class(self):
        if self.action == "create":
            return RefundCommandSerializer
        return RefundSerializer

    def get_queryset(self):
        qs = (
            Refund.objects.select_related("sale", "user")
            .prefetch_related("lines")
            .order_by("-created_at")
        )

        params = self.request.query_params

        sale_raw = (params.get("saleId") or "").strip()
        if sale_raw:
            sale_id = _parse_uuid(sale_raw)
            qs = qs.filter(sale_id=sale_id) if sale_id else qs.none()

        branch_raw = (params.get("branchId") or "").strip()
        if branch_raw:
            branch_id = _parse_uuid(branch_raw)
            qs = qs.filter(sale__branch_id=branch_id) if branch_id else qs.none()

        return qs

    @extend_schema(
        parameters=[
            OpenApiParameter("saleId", str, description="Filter by original sale UUID"),
            OpenApiParameter("branchId", str, description="Filter by branch UUID"),
        ],
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    @extend_schema(
        request=RefundCommandSerializer,
        responses={201: RefundResultSerializer},
        description=(
            "Refund quantities of a completed sale. Stock returns to the original "
            "batch; the sale becomes REFUNDED once every line is fully refunded."
        ),
    )
    def create(self, request, *args, **kwargs):
        command = RefundCommandSerializer(data=request.data)
        if not command.is_valid():
            return serializer_error_response(command.errors, action="create_refund")

        v = command.validated_data

        try:
            refund = create_refund(
                sale=v["originalSaleId"],
                lines=command.to_service_lines(),
                reason=v.get("refundReason", ""),
                user=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc, action="create_refund")
        except DatabaseError:
            return service_unavailable_response(action="create_refund")

        return Response(
            {
                "refundId": str(refund.id),
                "totalRefunded": str(refund.total_amount),
                "saleStatus": refund.sale.status,
            },
            status=status.HTTP_201_CREATED,
        )
