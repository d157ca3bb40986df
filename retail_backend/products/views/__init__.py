from .stock_batch import StockBatchViewSet
from .stock_movement import StockMovementViewSet

__all__ = ["StockBatchViewSet", "StockMovementViewSet"]
