# backend/schemas/transaction.py
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from datetime import datetime
from uuid import UUID

from models.transaction import PaymentMethod, TransactionStatus
from schemas.common import ORMBase, Money
from schemas.order import OrderResponse
from schemas.user import UserResponse


class TransactionCreate(BaseModel):
    order_id: UUID
    payment_method: PaymentMethod
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


# Admin status update; empty optional fields leave the stored value alone
class TransactionStatusUpdate(BaseModel):
    status: str
    external_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    gateway_response: Optional[Any] = None


# Details for redirecting the customer to eSewa
class EsewaPaymentRequest(BaseModel):
    transaction_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    product_code: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    product_service_charge: Decimal = Field(default=Decimal("0"), ge=0)
    product_delivery_charge: Decimal = Field(default=Decimal("0"), ge=0)
    success_url: Optional[str] = None
    failure_url: Optional[str] = None


# Callback data posted back by the gateway. Unknown fields are kept so the
# full payload can be stored for audit.
class EsewaCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    transaction_code: Optional[str] = None
    status: Optional[str] = None
    total_amount: Optional[str] = None
    product_code: Optional[str] = None
    ref_id: Optional[str] = None
    message: Optional[str] = None
    signed_field_names: Optional[str] = None
    signature: Optional[str] = None


class TransactionOut(ORMBase):
    id: UUID
    order_id: UUID
    order: Optional[OrderResponse] = None
    user_id: UUID
    user: Optional[UserResponse] = None
    payment_method: PaymentMethod
    amount: Money
    status: TransactionStatus
    external_ref: Optional[str] = None
    payment_url: Optional[str] = None
    merchant_code: Optional[str] = None
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    gateway_response: Optional[Any] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
