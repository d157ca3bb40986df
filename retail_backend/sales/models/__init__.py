# sales/models/__init__.py

"""
SALES MODELS PACKAGE EXPORTS

Purpose:
- Central export surface for sales app models.
"""

from .refund import Refund
from .refund_line import RefundLine
from .sale import Sale
from .sale_line import SaleLine

__all__ = [
    "Sale",
    "SaleLine",
    "Refund",
    "RefundLine",
]
