"""
Ledger Entry database model.

Immutable, signed credit movements. A user's balance is the sum of their entries.
"""

from sqlalchemy import Column, Integer, DateTime, Enum, String
from sqlalchemy.sql import func
from inspectswap.app.db.session import Base
from inspectswap.app.models.enums import LedgerEntryKind


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Positive amount = credit, negative amount = debit.
    NO updates or deletions allowed; there is no stored balance anywhere.
    Report/bounty links are plain ids so entries outlive deleted reports.
    """
    __tablename__ = "ledger_entries"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Account (opaque id from the identity provider)
    user_id = Column(String(128), nullable=False, index=True)

    # Movement
    amount = Column(Integer, nullable=False)
    kind = Column(Enum(LedgerEntryKind), nullable=False, index=True)
    description = Column(String(255), nullable=True)

    # Linkage
    report_id = Column(Integer, nullable=True, index=True)
    bounty_id = Column(Integer, nullable=True, index=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, user='{self.user_id}', kind='{self.kind.value}', amount={self.amount})>"
