# sales/serializers/sale.py

"""
SALE SERIALIZERS

Wire names are camelCase (compatibility contract with POS clients); model
fields stay snake_case and are mapped with source=.

- SaleCommandSerializer: POST /api/sales/sales/ input
- SaleSerializer:        receipts + sales history (read-only)
"""

from rest_framework import serializers

from sales.models import Refund, Sale, SaleLine


# ==========================================================
# INPUT
# ==========================================================

class SaleLineInputSerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    batchId = serializers.UUIDField(required=False, allow_null=True, default=None)
    quantity = serializers.IntegerField(min_value=1)
    lineDiscountPercent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False,
        allow_null=True,
        default=None,
    )


class SaleCommandSerializer(serializers.Serializer):
    # Resolved by the service: missing -> BRANCH_REQUIRED, unknown -> INVALID_REQUEST
    branchId = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    lines = SaleLineInputSerializer(many=True, allow_empty=False)
    paymentMethod = serializers.ChoiceField(choices=Sale.PaymentMethod.choices)
    paymentStatus = serializers.ChoiceField(
        choices=Sale.PaymentStatus.choices,
        required=False,
        default=Sale.PaymentStatus.COMPLETED,
    )
    orderDiscountPercent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False,
        allow_null=True,
        default=None,
    )

    def to_service_lines(self):
        return [
            {
                "product_id": line["productId"],
                "batch_id": line.get("batchId"),
                "quantity": line["quantity"],
                "line_discount_percent": line.get("lineDiscountPercent"),
            }
            for line in self.validated_data["lines"]
        ]


# ==========================================================
# OUTPUT
# ==========================================================

class SaleLineSerializer(serializers.ModelSerializer):
    """
    Sale line (read-only). One row per batch drawn.
    """

    lineId = serializers.UUIDField(source="id", read_only=True)
    productId = serializers.UUIDField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product.name", read_only=True)
    unitLabel = serializers.CharField(source="product.unit_label", read_only=True)
    batchId = serializers.UUIDField(source="batch_id", read_only=True)
    batchNo = serializers.CharField(source="batch.batch_number", read_only=True)
    expireDate = serializers.DateField(source="batch.expiry_date", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2, read_only=True)
    lineDiscountPercent = serializers.DecimalField(
        source="line_discount_percent", max_digits=5, decimal_places=2, read_only=True
    )
    discountAmount = serializers.DecimalField(
        source="discount_amount", max_digits=12, decimal_places=2, read_only=True
    )
    lineTotal = serializers.DecimalField(source="line_total", max_digits=12, decimal_places=2, read_only=True)
    netAmount = serializers.DecimalField(source="net_amount", max_digits=12, decimal_places=2, read_only=True)
    quantityRefunded = serializers.IntegerField(source="quantity_refunded", read_only=True)

    class Meta:
        model = SaleLine
        fields = [
            "lineId",
            "position",
            "productId",
            "productName",
            "unitLabel",
            "batchId",
            "batchNo",
            "expireDate",
            "quantity",
            "unitPrice",
            "lineDiscountPercent",
            "discountAmount",
            "lineTotal",
            "netAmount",
            "quantityRefunded",
        ]
        read_only_fields = fields


class SaleRefundSummarySerializer(serializers.ModelSerializer):
    refundId = serializers.UUIDField(source="id", read_only=True)
    totalRefunded = serializers.DecimalField(
        source="total_amount", max_digits=12, decimal_places=2, read_only=True
    )
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Refund
        fields = ["refundId", "totalRefunded", "reason", "createdAt"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    """
    CANONICAL SALE SERIALIZER (receipt + history)
    """

    saleId = serializers.UUIDField(source="id", read_only=True)
    invoiceNo = serializers.CharField(source="invoice_no", read_only=True)
    branchId = serializers.UUIDField(source="branch_id", read_only=True)
    userId = serializers.UUIDField(source="user_id", read_only=True, allow_null=True)
    paymentMethod = serializers.CharField(source="payment_method", read_only=True)
    paymentStatus = serializers.CharField(source="payment_status", read_only=True)
    subtotal = serializers.DecimalField(
        source="subtotal_amount", max_digits=12, decimal_places=2, read_only=True
    )
    orderDiscountPercent = serializers.DecimalField(
        source="order_discount_percent", max_digits=5, decimal_places=2, read_only=True
    )
    discountAmount = serializers.DecimalField(
        source="discount_amount", max_digits=12, decimal_places=2, read_only=True
    )
    total = serializers.DecimalField(source="total_amount", max_digits=12, decimal_places=2, read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    completedAt = serializers.DateTimeField(source="completed_at", read_only=True)

    lines = SaleLineSerializer(many=True, read_only=True)
    refunds = SaleRefundSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            "saleId",
            "invoiceNo",
            "branchId",
            "userId",
            "status",
            "paymentMethod",
            "paymentStatus",
            "subtotal",
            "orderDiscountPercent",
            "discountAmount",
            "total",
            "createdAt",
            "completedAt",
            "lines",
            "refunds",
        ]
        read_only_fields = fields
