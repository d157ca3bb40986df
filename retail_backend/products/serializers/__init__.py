from .stock_batch import (
    BatchAdjustInputSerializer,
    BatchListQuerySerializer,
    BatchSelectQuerySerializer,
    StockBatchSerializer,
)
from .stock_movement import StockMovementSerializer

__all__ = [
    "StockBatchSerializer",
    "BatchListQuerySerializer",
    "BatchSelectQuerySerializer",
    "BatchAdjustInputSerializer",
    "StockMovementSerializer",
]
