# sales/api/urls.py

"""
SALES API URLS (CANONICAL)

Provides:
    /api/sales/sales/            (create + history)
    /api/sales/sales/<uuid>/     (receipt)
    /api/sales/refunds/          (create + history)
    /api/sales/refunds/<uuid>/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from sales.api.viewsets import RefundViewSet, SaleViewSet

router = DefaultRouter()
router.register(r"sales", SaleViewSet, basename="sales")
router.register(r"refunds", RefundViewSet, basename="refunds")

urlpatterns = [
    path("", include(router.urls)),
]
