# backend/models/transaction.py
import enum
import uuid
from sqlalchemy import Column, String, Numeric, Text, ForeignKey, DateTime, Enum, JSON, Uuid, func
from sqlalchemy.orm import relationship
from database import Base


# Payment lifecycle; PENDING is the only entry state
class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    ESEWA = "ESEWA"
    CASH = "CASH"
    CARD = "CARD"


# Payment attempt for an order. At most one per order (unique order_id).
class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING, index=True)

    # Gateway integration details
    external_ref = Column(String(100), unique=True, nullable=True)
    payment_url = Column(Text, nullable=True)
    merchant_code = Column(String(100), nullable=True)
    product_code = Column(String(100), nullable=True)
    product_name = Column(String(200), nullable=True)
    gateway_response = Column(JSON, nullable=True)  # raw callback payload, kept for audit
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order")
    user = relationship("User")
