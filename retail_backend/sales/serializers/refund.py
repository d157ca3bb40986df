# sales/serializers/refund.py

"""
REFUND SERIALIZERS

- RefundCommandSerializer: POST /api/sales/refunds/ input
- RefundSerializer:        refund history (read-only)
"""

from rest_framework import serializers

from sales.models import Refund, RefundLine


class RefundLineInputSerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    saleLineId = serializers.UUIDField(required=False, allow_null=True, default=None)


class RefundCommandSerializer(serializers.Serializer):
    originalSaleId = serializers.UUIDField()
    lines = RefundLineInputSerializer(many=True, allow_empty=False)
    refundReason = serializers.CharField(required=False, allow_blank=True, default="")

    def to_service_lines(self):
        return [
            {
                "product_id": line["productId"],
                "quantity": line["quantity"],
                "reason": line.get("reason", ""),
                "sale_line_id": line.get("saleLineId"),
            }
            for line in self.validated_data["lines"]
        ]


class RefundLineReadSerializer(serializers.ModelSerializer):
    saleLineId = serializers.UUIDField(source="sale_line_id", read_only=True)
    productId = serializers.UUIDField(source="product_id", read_only=True)
    batchId = serializers.UUIDField(source="batch_id", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = RefundLine
        fields = [
            "id",
            "saleLineId",
            "productId",
            "batchId",
            "quantity",
            "unitPrice",
            "amount",
            "reason",
        ]
        read_only_fields = fields


class RefundSerializer(serializers.ModelSerializer):
    refundId = serializers.UUIDField(source="id", read_only=True)
    originalSaleId = serializers.UUIDField(source="sale_id", read_only=True)
    totalRefunded = serializers.DecimalField(
        source="total_amount", max_digits=12, decimal_places=2, read_only=True
    )
    userId = serializers.UUIDField(source="user_id", read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    lines = RefundLineReadSerializer(many=True, read_only=True)

    class Meta:
        model = Refund
        fields = [
            "refundId",
            "originalSaleId",
            "totalRefunded",
            "reason",
            "userId",
            "createdAt",
            "lines",
        ]
        read_only_fields = fields
