from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from models.order import OrderStatus
from schemas.common import ORMBase, Money
from schemas.book import BookOut
from schemas.user import UserResponse


# Input schema for a single line item; price defaults to the catalog price
class OrderItemCreate(BaseModel):
    book_id: UUID
    quantity: int = Field(ge=1)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


# Input schema for creating a new order
class OrderCreate(BaseModel):
    items: List[OrderItemCreate]


# Output schema for an individual order line item
class OrderItemOut(ORMBase):
    id: UUID
    book_id: UUID
    quantity: int
    price: Money
    book: Optional[BookOut] = None


# Output schema representing the full order details
class OrderResponse(ORMBase):
    id: UUID
    user_id: UUID
    user: Optional[UserResponse] = None
    status: OrderStatus
    total_price: Money
    items: List[OrderItemOut]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: str
