from pydantic import BaseModel
from typing import Any, List, Optional
from datetime import datetime
from uuid import UUID

from schemas.common import ORMBase


# Single audit entry
class LogResponse(ORMBase):
    id: int
    user_id: Optional[UUID] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: Optional[datetime] = None
    meta: Optional[Any] = None


class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int
