# backend/models/book.py
import uuid
from sqlalchemy import Column, String, Integer, Numeric, Text, ForeignKey, DateTime, Uuid, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model Book
# A catalog entry. Price and stock are guarded by CHECK constraints,
# the category reference by a foreign key.
class Book(Base):
    __tablename__ = "books"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False, index=True)
    author = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False)
    stock = Column(Integer, CheckConstraint("stock >= 0"), nullable=False, default=0)

    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="books")
