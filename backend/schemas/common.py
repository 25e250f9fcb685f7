# backend/schemas/common.py
from decimal import Decimal
from typing import Annotated, Generic, TypeVar
from pydantic import BaseModel, ConfigDict, PlainSerializer

T = TypeVar("T")

# Monetary amounts are Decimal internally but rendered as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Success envelope: {"data": ...}
class Envelope(BaseModel, Generic[T]):
    data: T


class MessageOut(BaseModel):
    message: str
