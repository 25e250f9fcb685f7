from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from schemas.common import ORMBase

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for user registration requests
class UserCreate(UserBase):
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    role: Optional[str] = None  # honoured only when admin signup is enabled

# Output schema for user profile details
class UserResponse(ORMBase):
    id: UUID
    name: str
    email: EmailStr
    role: str
    created_at: Optional[datetime] = None

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Schema for paginated user list response
class UsersPage(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int
