#taskhub/models/audit.py
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, Text, Index
)
from taskhub.models.base import Base
from taskhub.core.timeutils import utcnow

AUDIT_ACTIONS = (
    "user_login",
    "user_logout",
    "user_register",
    "user_update",
    "user_deactivate",
    "user_activate",
    "task_create",
    "task_update",
    "task_delete",
    "task_complete",
    "task_cancel",
    "export_data",
    "admin_action",
    "system_event",
)
AUDIT_RESOURCES = ("user", "task", "export", "system")
AUDIT_STATUSES = ("success", "failure", "error")


class AuditLog(Base):
    """
    AuditLog: неизменяемая запись "кто что сделал, когда и с каким итогом".
    """
    __tablename__ = "audit_logs"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    # без FK: запись переживает удаление пользователя
    user_id: int = Column(Integer, nullable=True, index=True, doc="ID пользователя")
    action: str = Column(String(32), nullable=False, doc="Тип действия")
    resource: str = Column(String(16), nullable=False, doc="Тип ресурса")
    resource_id: int = Column(Integer, nullable=True, doc="ID ресурса")
    details: dict = Column(JSON, nullable=False, default=lambda: {}, doc="Типизированный payload события")
    status: str = Column(String(16), nullable=False, default="success")
    error_message: str = Column(Text, nullable=True)
    ip_address: str = Column(String(64), nullable=True)
    user_agent: str = Column(String(256), nullable=True)
    timestamp: datetime = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_audit_logs_user_timestamp", "user_id", "timestamp"),
        Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
        Index("ix_audit_logs_resource", "resource", "resource_id"),
        Index("ix_audit_logs_status_timestamp", "status", "timestamp"),
    )

    def __repr__(self):
        return (
            f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, "
            f"resource={self.resource}:{self.resource_id}, status={self.status})>"
        )
