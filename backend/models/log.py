from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Uuid, func
from database import Base

AUDIT_SUCCESS = "SUCCESS"
AUDIT_FAIL = "FAIL"

# Audit trail entry written by the routes after each state-changing call.
# Rows outlive their user: deleting the account only clears user_id.
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)      # e.g. ORDER_CREATE, ESEWA_VERIFY
    resource = Column(String(50), nullable=False, index=True)    # route group: orders, transactions...
    status = Column(String(20), nullable=False, default=AUDIT_SUCCESS, index=True)
    ip = Column(String(64), nullable=True)

    # Event specific context (ids, amounts, failure reasons)
    meta = Column(JSON, nullable=True)
