# backend/urls.py
"""
Route table for the ledger service.

Everything public hangs off /api/:
  auth/       JWT pair + the caller's profile and capabilities
  sales/      sale and refund writers, receipts, history
  inventory/  batch queries, FEFO preview, adjustments, movement ledger

The admin site is mounted at settings.ADMIN_PATH rather than a fixed path.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib import admin
from django.db import DatabaseError, connections
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def _object_schema(*names: str, kind: str = "string") -> dict:
    return {
        "type": "object",
        "properties": {name: {"type": kind} for name in names},
    }


HEALTH_SCHEMA = _object_schema("status", "db")

ENDPOINTS = {
    "auth": {
        "me": "/api/auth/me/",
        "jwt_create": "/api/auth/jwt/create/",
        "jwt_refresh": "/api/auth/jwt/refresh/",
    },
    "docs": {
        "swagger": "/api/docs/",
        "schema": "/api/schema/",
    },
    "modules": {
        "sales": "/api/sales/sales/",
        "refunds": "/api/sales/refunds/",
        "batches": "/api/inventory/batches/",
        "stock_movements": "/api/inventory/stock-movements/",
    },
}


@extend_schema(responses={200: _object_schema("message", "auth", "docs", "modules", kind="object")})
@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request):
    return Response({"message": "Retail Inventory Ledger API is running", **ENDPOINTS})


@extend_schema(responses={200: HEALTH_SCHEMA, 503: HEALTH_SCHEMA})
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Liveness plus a round trip to the default database."""
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check failed: database unavailable")
        return Response({"status": "degraded", "db": "down"}, status=503)

    return Response({"status": "ok", "db": "ok"})


def _admin_prefix() -> str:
    prefix = getattr(settings, "ADMIN_PATH", "admin/") or "admin/"
    return prefix if prefix.endswith("/") else f"{prefix}/"


api_urlpatterns = [
    path("", api_root, name="api-root"),
    path("health/", health_check, name="health-check"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("auth/", include("users.urls")),
    path("sales/", include("sales.api.urls")),
    path("inventory/", include("products.urls")),
]

urlpatterns = [
    path(_admin_prefix(), admin.site.urls),
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
