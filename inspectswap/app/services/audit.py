"""
Audit logging service for tracking credit-moving actions.

Audit rows are written inside the caller's transaction so they commit or
roll back together with the ledger entries they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from inspectswap.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    SIGNUP_BONUS_GRANTED = "SIGNUP_BONUS_GRANTED"

    REPORT_UPLOADED = "REPORT_UPLOADED"
    REPORT_DOWNLOADED = "REPORT_DOWNLOADED"
    REPORT_DELETED = "REPORT_DELETED"

    BOUNTY_CREATED = "BOUNTY_CREATED"
    BOUNTY_FULFILLED = "BOUNTY_FULFILLED"
    BOUNTY_CANCELLED = "BOUNTY_CANCELLED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an audit event to the current unit of work.

    Args:
        db: Database session (commit is the caller's responsibility)
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    actor_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        actor_id: Filter by acting user
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if actor_id:
        query = query.where(AuditLog.actor_id == actor_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
