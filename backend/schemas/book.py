# backend/schemas/book.py
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from schemas.common import ORMBase, Money
from schemas.category import CategoryOut


# Shared attributes for book entities
class BookBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    category_id: UUID


class BookCreate(BookBase):
    pass


# Schema for partial book updates - all fields optional
class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[UUID] = None


class BookOut(ORMBase):
    id: UUID
    title: str
    author: str
    description: Optional[str] = None
    price: Money
    stock: int
    category_id: UUID
    category: Optional[CategoryOut] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
