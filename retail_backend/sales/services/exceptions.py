# sales/services/exceptions.py

"""
LEDGER DOMAIN ERRORS

Every business-rule rejection raised by the sale, refund, selector and
adjustment services is a LedgerError subclass carrying:
- code:        stable machine-readable code for the API envelope
- http_status: status the API boundary maps it to

Views convert these into {"error": {"code", "message"}} via error_response().
Infrastructure failures (DatabaseError) are NOT LedgerErrors.
"""

from __future__ import annotations

from rest_framework import status


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request rejected."

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# ============================================================
# STOCK
# ============================================================

class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Not enough stock to satisfy the request."


class BatchConflict(LedgerError):
    """The planned batch changed between selection and locking."""

    code = "BATCH_CONFLICT"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Batch quantity changed concurrently; retry the request."


class StockAdjustmentError(LedgerError):
    code = "INVALID_ADJUSTMENT"
    default_message = "Invalid stock adjustment."


# ============================================================
# REFUND
# ============================================================

class OverRefund(LedgerError):
    code = "OVER_REFUND"
    default_message = "Refund quantity exceeds the quantity still refundable."


class SaleAlreadyRefunded(OverRefund):
    """Every line of the sale is already fully refunded."""

    code = "SALE_ALREADY_REFUNDED"
    http_status = status.HTTP_409_CONFLICT
    default_message = "This sale has already been refunded."


class InvalidSaleState(LedgerError):
    code = "INVALID_SALE_STATE"
    default_message = "Sale is not in a refundable state."


class SaleNotFound(LedgerError):
    code = "SALE_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Sale not found."


# ============================================================
# REQUEST VALIDATION
# ============================================================

class InvalidDiscount(LedgerError):
    code = "INVALID_DISCOUNT"
    default_message = "Discount percentage must be a number between 0 and 100."


class BranchRequired(LedgerError):
    code = "BRANCH_REQUIRED"
    default_message = "A branch is required."


class InvalidQuantity(LedgerError):
    code = "INVALID_QUANTITY"
    default_message = "Quantity must be a positive whole number."


class InvalidRequest(LedgerError):
    code = "INVALID_REQUEST"
    default_message = "Invalid request."
