#taskhub/crud/audit.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.models.audit import AuditLog, AUDIT_ACTIONS, AUDIT_RESOURCES, AUDIT_STATUSES
from taskhub.core.timeutils import days_ago
import logging

logger = logging.getLogger("TaskHub.Audit")

def log_action(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,
    resource: str,
    resource_id: Optional[int] = None,
    details: Optional[BaseModel] = None,
    status: str = "success",
    error_message: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[AuditLog]:
    """
    Записать событие аудита. Никогда не бросает: сбой записи только логируется,
    исходная операция от него не падает.
    """
    try:
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")
        if resource not in AUDIT_RESOURCES:
            raise ValueError(f"Unknown audit resource: {resource}")
        if status not in AUDIT_STATUSES:
            raise ValueError(f"Unknown audit status: {status}")
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details.model_dump(mode="json") if details is not None else {},
            status=status,
            error_message=error_message,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:256] or None,
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        db.rollback()
        logger.error(f"Error logging action {action} for user {user_id}: {e}")
        return None

def get_user_activity(db: Session, user_id: int, limit: int = 50) -> List[AuditLog]:
    return list(db.scalars(
        select(AuditLog)
        .where(AuditLog.user_id == user_id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .limit(limit)
    ).all())

def get_recent_logs(db: Session, limit: int = 200) -> List[AuditLog]:
    return list(db.scalars(
        select(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit)
    ).all())

def get_failed_actions(
    db: Session, days: int = 7, limit: Optional[int] = None, now: Optional[datetime] = None
) -> List[AuditLog]:
    query = (
        select(AuditLog)
        .where(AuditLog.status.in_(("failure", "error")), AuditLog.timestamp >= days_ago(days, now))
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return list(db.scalars(query).all())

def get_resource_activity(
    db: Session, resource: str, resource_id: int, days: int = 30, now: Optional[datetime] = None
) -> List[AuditLog]:
    return list(db.scalars(
        select(AuditLog)
        .where(
            AuditLog.resource == resource,
            AuditLog.resource_id == resource_id,
            AuditLog.timestamp >= days_ago(days, now),
        )
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    ).all())
