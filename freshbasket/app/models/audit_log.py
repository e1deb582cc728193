"""
Audit Log Database Model.

Records who moved an order through its lifecycle and who stopped sharing.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from freshbasket.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - ORDER_CREATED
    - AGENT_ASSIGNED
    - ORDER_STATUS_CHANGED
    - USER_CREATED
    - LOGOUT
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Order the action applies to, when there is one
    order_id = Column(Integer, index=True, nullable=True)

    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, order={self.order_id})>"
