# sales/api/viewsets/sale.py

"""
======================================================
PATH: sales/api/viewsets/sale.py
======================================================
SALE VIEWSET (STAFF)

Purpose:
- POST /api/sales/sales/       create a sale (validate, lock, deduct, persist)
- GET  /api/sales/sales/       sales history (branch / status / date filters)
- GET  /api/sales/sales/{id}/  receipt payload with lines + refunds

Security:
- create requires pos.sell
- list / retrieve require pos.sell OR reports.view_pos

Errors:
- Business rejections -> {"error": {"code", "message"}} with the code's status
- DatabaseError       -> 503 SERVICE_UNAVAILABLE
======================================================
"""

from __future__ import annotations

import uuid
from datetime import datetime

from django.db import DatabaseError
from django.db.models import Prefetch
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_POS_SELL,
    CAP_REPORTS_VIEW_POS,
    HasAnyCapability,
    HasCapability,
)
from sales.api.errors import (
    ledger_error_response,
    serializer_error_response,
    service_unavailable_response,
)
from sales.models import Sale, SaleLine
from sales.serializers import SaleCommandSerializer, SaleSerializer
from sales.services.exceptions import LedgerError
from sales.services.sale_service import create_sale


def _parse_date(s: str):
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


def _parse_uuid(s: str):
    try:
        return uuid.UUID(s)
    except ValueError:
        return None


class SaleViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action == "create":
            self.required_capability = CAP_POS_SELL
            return [IsAuthenticated(), HasCapability()]

        self.required_any_capabilities = {CAP_POS_SELL, CAP_REPORTS_VIEW_POS}
        return [IsAuthenticated(), HasAnyCapability()]

    def get_serializer_class(self):
        if self.action == "create":
            return SaleCommandSerializer
        return SaleSerializer

    # ======================================================
    # QUERYSET
    # ======================================================

    def get_queryset(self):
        qs = (
            Sale.objects.all()
            .select_related("user", "branch")
            .prefetch_related(
                Prefetch(
                    "lines",
                    queryset=SaleLine.objects.select_related("product", "batch").order_by("position"),
                ),
                "refunds",
            )
            .order_by("-created_at")
        )

        params = self.request.query_params

        branch_raw = (params.get("branchId") or "").strip()
        if branch_raw:
            # malformed ids match nothing
            branch_id = _parse_uuid(branch_raw)
            qs = qs.filter(branch_id=branch_id) if branch_id else qs.none()

        status_val = (params.get("status") or "").strip().upper()
        if status_val:
            qs = qs.filter(status=status_val)

        d1 = _parse_date((params.get("dateFrom") or "").strip())
        if d1:
            qs = qs.filter(created_at__date__gte=d1)

        d2 = _parse_date((params.get("dateTo") or "").strip())
        if d2:
            qs = qs.filter(created_at__date__lte=d2)

        return qs

    @extend_schema(
        parameters=[
            OpenApiParameter("branchId", str, description="Filter by branch UUID"),
            OpenApiParameter("status", str, description="PENDING / COMPLETED / CANCELLED / REFUNDED"),
            OpenApiParameter("dateFrom", str, description="YYYY-MM-DD (inclusive)"),
            OpenApiParameter("dateTo", str, description="YYYY-MM-DD (inclusive)"),
        ],
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    # ======================================================
    # CREATE SALE
    # ======================================================

    @extend_schema(
        request=SaleCommandSerializer,
        responses={201: SaleSerializer},
        description=(
            "Create a sale. Batches are chosen by explicit batchId or FEFO; a line "
            "larger than one batch is split across batches (one sale line per batch)."
        ),
    )
    def create(self, request, *args, **kwargs):
        command = SaleCommandSerializer(data=request.data)
        if not command.is_valid():
            return serializer_error_response(command.errors, action="create_sale")

        v = command.validated_data

        try:
            sale = create_sale(
                branch=v.get("branchId") or None,
                lines=command.to_service_lines(),
                payment_method=v["paymentMethod"],
                payment_status=v["paymentStatus"],
                order_discount_percent=v.get("orderDiscountPercent"),
                user=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc, action="create_sale")
        except DatabaseError:
            return service_unavailable_response(action="create_sale")

        sale = self.get_queryset().get(pk=sale.pk)
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)
