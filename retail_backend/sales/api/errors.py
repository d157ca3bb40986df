# sales/api/errors.py

"""
API ERROR NORMALIZATION

Every rejection leaves the API as:
    {"error": {"code": "...", "message": "..."}}

- LedgerError subclasses carry their own code + HTTP status
- serializer failures are mapped onto the closest ledger code
- DatabaseError is logged with a traceback and returned as 503
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response

from sales.services.exceptions import (
    InvalidDiscount,
    InvalidQuantity,
    InvalidRequest,
    LedgerError,
)

logger = logging.getLogger(__name__)


def error_response(*, code: str, message: str, http_status: int):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def ledger_error_response(exc: LedgerError, *, action: str = ""):
    logger.warning(
        "Ledger request rejected",
        extra={"action": action, "code": exc.code, "detail": exc.message},
    )
    return error_response(code=exc.code, message=exc.message, http_status=exc.http_status)


def service_unavailable_response(*, action: str = ""):
    logger.exception("Ledger request failed: database error", extra={"action": action})
    return error_response(
        code="SERVICE_UNAVAILABLE",
        message="The service is temporarily unavailable. Please retry.",
        http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


def _error_fields(errors, prefix: str = ""):
    if isinstance(errors, dict):
        for key, value in errors.items():
            yield from _error_fields(value, prefix=str(key))
    elif isinstance(errors, list):
        for item in errors:
            if isinstance(item, (dict, list)):
                yield from _error_fields(item, prefix=prefix)
            else:
                yield prefix, str(item)


def serializer_error_response(errors, *, action: str = ""):
    """
    Map DRF serializer errors onto a ledger error code.
    """
    fields = list(_error_fields(errors))
    names = {name for name, _msg in fields}

    if "quantity" in names:
        exc_class = InvalidQuantity
    elif names & {"lineDiscountPercent", "orderDiscountPercent"}:
        exc_class = InvalidDiscount
    else:
        exc_class = InvalidRequest

    message = "; ".join(f"{name}: {msg}" if name else msg for name, msg in fields)
    return ledger_error_response(exc_class(message or None), action=action)
