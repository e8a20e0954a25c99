"""Audit logging service."""

from typing import Any

import structlog
from sqlalchemy.orm import Session

from idpsync.db.models import AuditLog

logger = structlog.get_logger(__name__)


def log_audit_event(
    db: Session,
    *,
    event_type: str,
    action: str,
    actor_type: str,
    actor_id: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    error_message: str | None = None,
) -> AuditLog:
    """
    Log an audit event to the database.

    Args:
        db: Database session
        event_type: Type of event ('admin')
        action: Specific action ('identity_provider_deleted', etc.)
        actor_type: Type of actor ('user', 'system')
        actor_id: Identifier of the actor
        target_type: Type of target ('identity_provider')
        target_id: Identifier of the target
        details: Additional event details
        success: Whether the action was successful
        error_message: Error message if action failed

    Returns:
        The created AuditLog entry
    """
    entry = AuditLog(
        event_type=event_type,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
        success=success,
        error_message=error_message,
    )

    db.add(entry)

    # Also log to structured logger for real-time monitoring
    log_method = logger.info if success else logger.warning
    log_method(
        "audit_event",
        event_type=event_type,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        success=success,
        error_message=error_message,
    )

    return entry
