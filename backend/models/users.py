# backend/models/users.py
import uuid
from sqlalchemy import Column, String, DateTime, Uuid, func
from database import Base

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_CUSTOMER)  # fixed at creation

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == ROLE_ADMIN
