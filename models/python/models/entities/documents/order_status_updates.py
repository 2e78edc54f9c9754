from typing import Optional
from datetime import datetime
from clients.store import BaseDocumentModel, BaseEntityData
from .orders import OrderStatus


class OrderStatusUpdateData(BaseEntityData):
    order_id: str
    status: OrderStatus
    notes: Optional[str] = None
    updated_by: str
    timestamp: datetime


class OrderStatusUpdate(BaseDocumentModel[OrderStatusUpdateData]):
    _collection_name = "order_status_updates"
