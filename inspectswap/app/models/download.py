"""
Download database model.

Records that a user has unlocked a report. One row per (user, report).
"""

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from inspectswap.app.db.session import Base


class Download(Base):
    """
    Download model.

    The unique constraint makes re-unlocking idempotent at the storage level.
    """
    __tablename__ = "downloads"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    user_id = Column(String(128), nullable=False, index=True)
    report_id = Column(Integer, nullable=False, index=True)
    credit_spent = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "report_id", name="uq_downloads_user_report"),
    )

    def __repr__(self):
        return f"<Download(user='{self.user_id}', report_id={self.report_id}, spent={self.credit_spent})>"
