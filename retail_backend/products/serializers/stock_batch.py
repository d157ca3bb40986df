# products/serializers/stock_batch.py

from rest_framework import serializers

from products.models import StockBatch


class StockBatchSerializer(serializers.ModelSerializer):
    """
    Batch query shape: {id, batchNo, quantity, sellingPrice, expireDate}
    plus a few read-only audit fields.
    """

    batchNo = serializers.CharField(source="batch_number", read_only=True)
    quantity = serializers.IntegerField(source="quantity_remaining", read_only=True)
    quantityReceived = serializers.IntegerField(source="quantity_received", read_only=True)
    sellingPrice = serializers.DecimalField(
        source="selling_price", max_digits=12, decimal_places=2, read_only=True
    )
    expireDate = serializers.DateField(source="expiry_date", read_only=True, allow_null=True)
    productId = serializers.UUIDField(source="product_id", read_only=True)
    branchId = serializers.UUIDField(source="branch_id", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "batchNo",
            "quantity",
            "quantityReceived",
            "sellingPrice",
            "expireDate",
            "productId",
            "branchId",
            "isActive",
            "createdAt",
        ]
        read_only_fields = fields


class BatchListQuerySerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    branchId = serializers.UUIDField()
    excludeExpired = serializers.BooleanField(required=False, default=False)


class BatchSelectQuerySerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    branchId = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)
    batchId = serializers.UUIDField(required=False, allow_null=True, default=None)


class BatchAdjustInputSerializer(serializers.Serializer):
    quantityDelta = serializers.IntegerField()
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)
