"""
Report database model.

One uploaded inspection document, deduplicated globally by content hash.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from inspectswap.app.db.session import Base


class Report(Base):
    """
    Report model.

    content_hash is unique across all users: identical bytes can be registered once.
    download_count only ever increases.
    """
    __tablename__ = "reports"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    owner_user_id = Column(String(128), nullable=False, index=True)

    # Document
    property_address = Column(Text, nullable=False)
    content_hash = Column(String(64), unique=True, nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    inspection_date = Column(DateTime(timezone=True), nullable=True)

    # Analysis (display fields + full battlecard)
    major_defects = Column(JSON, nullable=True)
    summary_findings = Column(Text, nullable=True)
    negotiation_points = Column(JSON, nullable=True)
    estimated_credit = Column(Integer, nullable=True)
    analysis = Column(JSON, nullable=True)

    # Visibility
    is_public = Column(Boolean, default=True, nullable=False, index=True)
    download_count = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Report(id={self.id}, owner='{self.owner_user_id}', address='{self.property_address}')>"
