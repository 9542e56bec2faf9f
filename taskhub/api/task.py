#taskhub/api/task.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from taskhub.schemas.task import (
    TaskCreate, TaskRead, TaskUpdate, TaskPage, StatusUpdate, NoteCreate, ReminderCreate, DashboardSummary
)
from taskhub.schemas.audit import TaskEventDetails, NoteEventDetails, ExportEventDetails
from taskhub.crud.task import (
    create_task,
    get_task_for_caller,
    update_task,
    transition_status,
    complete_task,
    cancel_task,
    add_note,
    add_reminder,
    delete_task,
)
from taskhub.crud.task_query import parse_task_criteria, list_tasks, list_owner_tasks_for_export
from taskhub.crud.dashboard import summarize
from taskhub.crud.audit import log_action
from taskhub.services.export_service import export_tasks
from taskhub.dependencies import get_db, get_current_active_user, get_request_meta, RequestMeta
from taskhub.models.user import User as UserModel
from taskhub.core.exceptions import BaseAppException

logger = logging.getLogger("TaskHub.TasksAPI")

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])

def _audit(
    db: Session,
    meta: RequestMeta,
    user: UserModel,
    action: str,
    task_id: Optional[int] = None,
    details: Optional[BaseModel] = None,
    error: Optional[Exception] = None,
    resource: str = "task",
) -> None:
    log_action(
        db,
        user_id=user.id,
        action=action,
        resource=resource,
        resource_id=task_id,
        details=details,
        status="failure" if error else "success",
        error_message=getattr(error, "message", str(error)) if error else None,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )

@router.get("/", response_model=TaskPage)
def list_my_tasks(
    request: Request,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    """
    Список задач текущего пользователя: фильтры status, priority, category,
    search, due_date_from, due_date_to; сортировка sort_by/sort_order; page/limit.
    """
    criteria = parse_task_criteria(request.query_params)
    page = list_tasks(db, current_user.id, criteria)
    return TaskPage(
        results=[TaskRead.model_validate(t) for t in page.items],
        total_count=page.total,
        page=page.page,
        limit=page.limit,
        pages=page.pages,
    )

@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    """
    Сводка: сегодня, просрочено, ближайшие 7 дней, тренд завершений, категории.
    """
    return summarize(db, current_user.id)

@router.get("/export/{fmt}")
def export_my_tasks(
    fmt: str,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Экспорт задач текущего пользователя: csv, excel или pdf.
    """
    tasks = list_owner_tasks_for_export(db, current_user.id)
    details = ExportEventDetails(format=fmt, task_count=len(tasks))
    try:
        result = export_tasks(tasks, fmt, owner_name=current_user.full_name)
    except BaseAppException as e:
        _audit(db, meta, current_user, "export_data", details=details, error=e, resource="export")
        raise
    _audit(db, meta, current_user, "export_data", details=details, resource="export")
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )

@router.get("/{task_id}", response_model=TaskRead)
def get_one_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    """
    Получить задачу по ID (владелец или админ).
    """
    return get_task_for_caller(db, task_id, current_user)

@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_new_task(
    data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Создать новую задачу (статус pending).
    """
    try:
        task = create_task(db, current_user.id, data.model_dump(exclude_unset=True))
    except BaseAppException as e:
        _audit(db, meta, current_user, "task_create", details=TaskEventDetails(title=data.title), error=e)
        raise
    _audit(db, meta, current_user, "task_create", task.id, TaskEventDetails(title=task.title, status=task.status))
    return task

def _update(task_id: int, data: TaskUpdate, db: Session, current_user: UserModel, meta: RequestMeta):
    payload = data.model_dump(exclude_unset=True)
    try:
        task = update_task(db, task_id, current_user, payload)
    except BaseAppException as e:
        _audit(db, meta, current_user, "task_update", task_id, TaskEventDetails(changed_fields=sorted(payload)), e)
        raise
    _audit(
        db, meta, current_user, "task_update", task.id,
        TaskEventDetails(title=task.title, status=task.status, changed_fields=sorted(payload)),
    )
    return task

@router.put("/{task_id}", response_model=TaskRead)
def replace_task(
    task_id: int,
    data: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Обновить задачу (применяются только переданные поля).
    """
    return _update(task_id, data, db, current_user, meta)

@router.patch("/{task_id}", response_model=TaskRead)
def patch_task(
    task_id: int,
    data: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    return _update(task_id, data, db, current_user, meta)

@router.delete("/{task_id}")
def delete_one_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Удалить задачу безвозвратно.
    """
    try:
        deleted_id = delete_task(db, task_id, current_user)
    except BaseAppException as e:
        _audit(db, meta, current_user, "task_delete", task_id, error=e)
        raise
    _audit(db, meta, current_user, "task_delete", deleted_id)
    return {"message": "Task deleted successfully", "id": deleted_id}

def _transition(action: str, operation, task_id: int, db: Session, current_user: UserModel, meta: RequestMeta, *args):
    try:
        task = operation(db, task_id, current_user, *args)
    except BaseAppException as e:
        _audit(db, meta, current_user, action, task_id, error=e)
        raise
    _audit(db, meta, current_user, action, task.id, TaskEventDetails(title=task.title, status=task.status))
    return task

@router.post("/{task_id}/complete", response_model=TaskRead)
def complete_one_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    return _transition("task_complete", complete_task, task_id, db, current_user, meta)

@router.post("/{task_id}/cancel", response_model=TaskRead)
def cancel_one_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    return _transition("task_cancel", cancel_task, task_id, db, current_user, meta)

@router.post("/{task_id}/status", response_model=TaskRead)
def change_task_status(
    task_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Перевести задачу в любой из статусов pending, in-progress, completed, cancelled.
    """
    return _transition("task_update", transition_status, task_id, db, current_user, meta, data.status)

@router.post("/{task_id}/notes", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def add_task_note(
    task_id: int,
    data: NoteCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Добавить заметку к задаче (до 1000 символов).
    """
    details = NoteEventDetails(note_length=len(data.content))
    try:
        task = add_note(db, task_id, current_user, data.content)
    except BaseAppException as e:
        _audit(db, meta, current_user, "task_update", task_id, details, e)
        raise
    _audit(db, meta, current_user, "task_update", task.id, details)
    return task

@router.post("/{task_id}/reminders", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def add_task_reminder(
    task_id: int,
    data: ReminderCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    details = TaskEventDetails(changed_fields=["reminders"])
    try:
        task = add_reminder(db, task_id, current_user, data.time, data.channel)
    except BaseAppException as e:
        _audit(db, meta, current_user, "task_update", task_id, details, e)
        raise
    _audit(db, meta, current_user, "task_update", task.id, details)
    return task
