# products/urls.py

"""
INVENTORY URLS

Mounted at /api/inventory/:
    batches/                  batch query (FEFO order)
    batches/select/           FEFO preview
    batches/<uuid>/           one batch
    batches/<uuid>/adjust/    manual adjustment
    stock-movements/          ledger read
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from products.views import StockBatchViewSet, StockMovementViewSet

router = DefaultRouter()

router.register(r"batches", StockBatchViewSet, basename="batches")
router.register(r"stock-movements", StockMovementViewSet, basename="stock-movements")

urlpatterns = [
    path("", include(router.urls)),
]
