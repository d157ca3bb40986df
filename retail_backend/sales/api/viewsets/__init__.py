from .refund import RefundViewSet
from .sale import SaleViewSet

__all__ = ["SaleViewSet", "RefundViewSet"]
