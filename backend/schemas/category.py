from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from schemas.common import ORMBase


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CategoryOut(ORMBase):
    id: UUID
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
