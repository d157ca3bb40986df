# products/serializers/stock_movement.py

from rest_framework import serializers

from products.models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    """
    Ledger row: {type, quantity, productId, batchId, referenceId, timestamp}
    plus direction, reason and actor.
    """

    type = serializers.CharField(source="movement_type", read_only=True)
    productId = serializers.UUIDField(source="product_id", read_only=True)
    batchId = serializers.UUIDField(source="batch_id", read_only=True)
    branchId = serializers.UUIDField(source="branch_id", read_only=True)
    referenceId = serializers.UUIDField(source="reference_id", read_only=True, allow_null=True)
    saleId = serializers.UUIDField(source="sale_id", read_only=True, allow_null=True)
    refundId = serializers.UUIDField(source="refund_id", read_only=True, allow_null=True)
    actorId = serializers.UUIDField(source="performed_by_id", read_only=True, allow_null=True)
    timestamp = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "type",
            "direction",
            "quantity",
            "productId",
            "batchId",
            "branchId",
            "referenceId",
            "saleId",
            "refundId",
            "actorId",
            "reason",
            "timestamp",
        ]
        read_only_fields = fields
