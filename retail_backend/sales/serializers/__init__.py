from .refund import RefundCommandSerializer, RefundLineReadSerializer, RefundSerializer
from .sale import SaleCommandSerializer, SaleLineSerializer, SaleSerializer

__all__ = [
    "SaleCommandSerializer",
    "SaleLineSerializer",
    "SaleSerializer",
    "RefundCommandSerializer",
    "RefundLineReadSerializer",
    "RefundSerializer",
]
