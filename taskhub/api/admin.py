#taskhub/api/admin.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskhub.schemas.user import AdminUserCreate, RoleUpdate, UserRead
from taskhub.schemas.task import TaskRead, DashboardSummary
from taskhub.schemas.ai import AdminReport
from taskhub.schemas.audit import AuditLogRead, UserEventDetails
from taskhub.schemas.response import AdminDashboard, SuccessResponse
from taskhub.crud.user import create_user, get_user_or_404, get_users, set_user_role, delete_user
from taskhub.crud.task_query import list_all_tasks
from taskhub.crud.dashboard import admin_overview, category_report, critical_and_overdue, status_counts, summarize
from taskhub.crud.audit import log_action, get_recent_logs, get_failed_actions, get_resource_activity
from taskhub.models.task import TASK_STATUSES
from taskhub.models.user import User as DBUser
from taskhub.core.exceptions import BaseAppException, UserValidationError, ValidationError
from taskhub.dependencies import get_db, get_current_admin, get_request_meta, RequestMeta

logger = logging.getLogger("TaskHub.AdminAPI")

router = APIRouter(prefix="/api/admin", tags=["Admin"])

def _audit_admin(
    db: Session,
    admin: DBUser,
    meta: RequestMeta,
    target_id: Optional[int],
    operation: str,
    role: Optional[str] = None,
    error: Optional[BaseAppException] = None,
):
    log_action(
        db, user_id=admin.id, action="admin_action", resource="user", resource_id=target_id,
        details=UserEventDetails(target_user_id=target_id, operation=operation, role=role),
        status="failure" if error else "success",
        error_message=error.message if error else None,
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )

@router.get("/dashboard", response_model=AdminDashboard)
def get_admin_dashboard(
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    """
    Общая статистика: пользователи, задачи по статусам и категориям, сбои за неделю.
    """
    return AdminDashboard(
        overview=admin_overview(db),
        status_counts=status_counts(db),
        categories=category_report(db),
        failed_actions=len(get_failed_actions(db)),
    )

@router.get("/audit", response_model=List[AuditLogRead])
def get_audit_logs(
    limit: int = Query(200, ge=1, le=1000),
    failed_only: bool = Query(False),
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    """
    Последние записи аудита; failed_only: только неуспешные за days дней.
    """
    if failed_only:
        return get_failed_actions(db, days=days, limit=limit)
    return get_recent_logs(db, limit=limit)

@router.get("/audit/{resource}/{resource_id}", response_model=List[AuditLogRead])
def get_resource_audit(
    resource: str,
    resource_id: int,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    """
    История действий над конкретным ресурсом (task/user/export) за days дней.
    """
    return get_resource_activity(db, resource, resource_id, days=days)

@router.get("/users", response_model=List[UserRead])
def list_all_users(
    is_active: Optional[bool] = Query(None),
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    filters = {}
    if is_active is not None:
        filters["is_active"] = is_active
    if role:
        filters["role"] = role
    if search:
        filters["search"] = search
    return get_users(db, filters=filters)

@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user_as_admin(
    data: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Создать пользователя с любой ролью.
    """
    try:
        user = create_user(db, data.model_dump())
    except BaseAppException as e:
        _audit_admin(db, admin, meta, None, "create_user", data.role, error=e)
        raise
    _audit_admin(db, admin, meta, user.id, "create_user", user.role)
    return user

@router.put("/users/{user_id}/role", response_model=UserRead)
def change_user_role(
    user_id: int,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        if user_id == admin.id and data.role != "admin":
            raise UserValidationError("You cannot remove your own admin role.")
        user = set_user_role(db, user_id, data.role)
    except BaseAppException as e:
        _audit_admin(db, admin, meta, user_id, "change_role", data.role, error=e)
        raise
    _audit_admin(db, admin, meta, user_id, "change_role", data.role)
    return user

@router.delete("/users/{user_id}", response_model=SuccessResponse)
def remove_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Удалить пользователя и все его задачи.
    """
    try:
        if user_id == admin.id:
            raise UserValidationError("You cannot delete your own account.")
        deleted_id = delete_user(db, user_id)
    except BaseAppException as e:
        _audit_admin(db, admin, meta, user_id, "delete_user", error=e)
        raise
    _audit_admin(db, admin, meta, deleted_id, "delete_user")
    return SuccessResponse(result=deleted_id, detail="User deleted")

@router.get("/tasks", response_model=List[TaskRead])
def list_tasks_of_all_users(
    user_id: Optional[int] = Query(None),
    task_status: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    """
    Задачи всех пользователей с фильтрами user_id и status.
    """
    if task_status is not None and task_status not in TASK_STATUSES:
        raise ValidationError.from_errors([{"field": "status", "message": "Invalid status"}])
    return list_all_tasks(db, user_id=user_id, status=task_status)

@router.get("/users/{user_id}/dashboard", response_model=DashboardSummary)
def get_user_dashboard(
    user_id: int,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    get_user_or_404(db, user_id)
    return summarize(db, user_id)

@router.get("/ai-report", response_model=AdminReport)
def get_ai_report(
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
):
    """
    Критичные и просроченные открытые задачи по всей системе.
    """
    return critical_and_overdue(db)
