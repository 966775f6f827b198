"""
Audit Log Database Model.

Tracks every credit-moving action for reconciliation and support.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from inspectswap.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - SIGNUP_BONUS_GRANTED
    - REPORT_UPLOADED / REPORT_DOWNLOADED / REPORT_DELETED
    - BOUNTY_CREATED / BOUNTY_FULFILLED / BOUNTY_CANCELLED
    """
    __tablename__ = "audit_logs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(String(128), index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id})>"
