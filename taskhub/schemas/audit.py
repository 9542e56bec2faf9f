#taskhub/schemas/audit.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


# ==== Типизированные payload'ы событий (details) ====

class TaskEventDetails(BaseModel):
    """task_create / task_update / task_delete / task_complete / task_cancel"""
    title: Optional[str] = None
    status: Optional[str] = None
    changed_fields: List[str] = Field(default_factory=list)


class NoteEventDetails(BaseModel):
    """Добавление заметки (action = task_update)."""
    note_length: int


class ExportEventDetails(BaseModel):
    format: str
    task_count: int


class UserEventDetails(BaseModel):
    """user_register / user_update / user_activate / user_deactivate / admin_action"""
    target_user_id: Optional[int] = None
    operation: Optional[str] = None
    role: Optional[str] = None


class AuthEventDetails(BaseModel):
    """user_login / user_logout"""
    login: Optional[str] = None
    method: str = "password"


class AuditLogRead(BaseModel):
    id: int
    user_id: Optional[int]
    action: str
    resource: str
    resource_id: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True
