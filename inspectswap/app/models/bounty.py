"""
Bounty database model.

A stake by a user requesting a report for a specific address.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum
from sqlalchemy.sql import func
from inspectswap.app.db.session import Base
from inspectswap.app.models.enums import BountyStatus


class Bounty(Base):
    """
    Bounty model.

    Strict one-way lifecycle: OPEN -> FULFILLED or OPEN -> CANCELLED.
    The fulfilment fields are written together, exactly once.
    """
    __tablename__ = "bounties"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Requester
    requester_user_id = Column(String(128), nullable=False, index=True)
    property_address = Column(Text, nullable=False)
    staked_credits = Column(Integer, nullable=False)

    # Status
    status = Column(Enum(BountyStatus), default=BountyStatus.OPEN, nullable=False, index=True)

    # Fulfilment
    fulfilled_by_user_id = Column(String(128), nullable=True, index=True)
    fulfilled_report_id = Column(Integer, nullable=True)
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Bounty(id={self.id}, address='{self.property_address}', status='{self.status.value}')>"
