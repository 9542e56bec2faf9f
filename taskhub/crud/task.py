#taskhub/crud/task.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from taskhub.models.task import (
    Task,
    TaskNote,
    TASK_STATUSES,
    TASK_PRIORITIES,
    REMINDER_CHANNELS,
    DEPENDENCY_KINDS,
)
from taskhub.models.user import User
from taskhub.core.exceptions import (
    AuthorizationError,
    TaskNotFound,
    TaskValidationError,
)
from taskhub.core.timeutils import parse_datetime, utcnow
import logging

logger = logging.getLogger("TaskHub.Tasks")

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
SUMMARY_MAX_LENGTH = 500
CATEGORY_MAX_LENGTH = 100
TAG_MAX_LENGTH = 50
NOTE_MAX_LENGTH = 1000

TEXT_FIELDS = {
    # field: (max length, required, label)
    "title": (TITLE_MAX_LENGTH, True, "Task title"),
    "description": (DESCRIPTION_MAX_LENGTH, False, "Task description"),
    "summary": (SUMMARY_MAX_LENGTH, False, "Task summary"),
    "category": (CATEGORY_MAX_LENGTH, True, "Category"),
}

ATTACHMENT_REQUIRED_KEYS = ("filename", "original_name", "mimetype", "size", "url")


# ==== Валидация ====

def _add_error(errors: List[Dict[str, str]], field: str, message: str) -> None:
    errors.append({"field": field, "message": message})

def _clean_text(errors, field: str, value: Any) -> Optional[str]:
    max_length, required, label = TEXT_FIELDS[field]
    if value is None:
        if required:
            _add_error(errors, field, f"{label} is required")
        return None
    if not isinstance(value, str):
        _add_error(errors, field, f"{label} must be a string")
        return None
    value = value.strip()
    if required and not value:
        _add_error(errors, field, f"{label} is required")
        return None
    if len(value) > max_length:
        _add_error(errors, field, f"{label} cannot exceed {max_length} characters")
        return None
    return value

def _clean_tags(errors, value: Any) -> Optional[List[str]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        _add_error(errors, "tags", "Tags must be a list of strings")
        return None
    cleaned: List[str] = []
    for tag in value:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            _add_error(errors, "tags", f"Tag cannot exceed {TAG_MAX_LENGTH} characters")
            return None
        if tag not in cleaned:
            cleaned.append(tag)
    return cleaned

def _clean_time(errors, field: str, value: Any) -> Optional[Dict[str, int]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        _add_error(errors, field, "Time must be an object with hours and minutes")
        return None
    cleaned = {}
    for key, upper in (("hours", 24), ("minutes", 59)):
        part = value.get(key)
        if part is None:
            continue
        if isinstance(part, bool) or not isinstance(part, int) or not 0 <= part <= upper:
            _add_error(errors, f"{field}.{key}", f"{key.capitalize()} must be an integer between 0 and {upper}")
            continue
        cleaned[key] = part
    return cleaned

def _clean_attachments(errors, value: Any, now: datetime) -> Optional[List[Dict[str, Any]]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(a, dict) for a in value):
        _add_error(errors, "attachments", "Attachments must be a list of objects")
        return None
    cleaned = []
    for index, attachment in enumerate(value):
        missing = [key for key in ATTACHMENT_REQUIRED_KEYS if attachment.get(key) in (None, "")]
        if missing:
            _add_error(errors, f"attachments[{index}]", f"Missing attachment fields: {', '.join(missing)}")
            continue
        size = attachment["size"]
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            _add_error(errors, f"attachments[{index}].size", "Size must be a non-negative integer")
            continue
        uploaded_at = attachment.get("uploaded_at") or now
        try:
            uploaded_at = parse_datetime(uploaded_at)
        except ValueError:
            _add_error(errors, f"attachments[{index}].uploaded_at", "Invalid date format")
            continue
        cleaned.append({
            "filename": str(attachment["filename"]),
            "original_name": str(attachment["original_name"]),
            "mimetype": str(attachment["mimetype"]),
            "size": size,
            "url": str(attachment["url"]),
            "uploaded_at": uploaded_at.isoformat(),
        })
    return cleaned

def _clean_reminder(errors, field: str, reminder: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(reminder, dict):
        _add_error(errors, field, "Reminder must be an object")
        return None
    try:
        time_value = parse_datetime(reminder.get("time"))
    except ValueError:
        _add_error(errors, f"{field}.time", "Reminder time is required and must be a valid date")
        return None
    channel = reminder.get("channel") or "both"
    if channel not in REMINDER_CHANNELS:
        _add_error(errors, f"{field}.channel", f"Reminder channel must be one of: {', '.join(REMINDER_CHANNELS)}")
        return None
    return {"time": time_value.isoformat(), "channel": channel, "sent": bool(reminder.get("sent", False))}

def _clean_reminders(errors, value: Any) -> Optional[List[Dict[str, Any]]]:
    if value is None:
        return []
    if not isinstance(value, list):
        _add_error(errors, "reminders", "Reminders must be a list")
        return None
    cleaned = [_clean_reminder(errors, f"reminders[{i}]", r) for i, r in enumerate(value)]
    return [r for r in cleaned if r is not None]

def _clean_dependencies(db: Session, errors, value: Any, task_id: Optional[int], owner_id: Optional[int]) -> Optional[List[Dict[str, Any]]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(d, dict) for d in value):
        _add_error(errors, "dependencies", "Dependencies must be a list of objects")
        return None
    cleaned = []
    for index, dependency in enumerate(value):
        ref_id = dependency.get("task_id")
        kind = dependency.get("kind") or "related"
        if isinstance(ref_id, bool) or not isinstance(ref_id, int):
            _add_error(errors, f"dependencies[{index}].task_id", "Task id must be an integer")
            continue
        if kind not in DEPENDENCY_KINDS:
            _add_error(errors, f"dependencies[{index}].kind", f"Dependency kind must be one of: {', '.join(DEPENDENCY_KINDS)}")
            continue
        if task_id is not None and ref_id == task_id:
            _add_error(errors, f"dependencies[{index}].task_id", "Task cannot depend on itself")
            continue
        ref = db.get(Task, ref_id)
        # чужая задача неотличима от отсутствующей
        if ref is None or (owner_id is not None and ref.user_id != owner_id):
            _add_error(errors, f"dependencies[{index}].task_id", f"Task {ref_id} does not exist")
            continue
        cleaned.append({"task_id": ref_id, "kind": kind})
    return cleaned

def _clean_ai_flags(errors, value: Any) -> Optional[Dict[str, bool]]:
    if value is None:
        return {"description": False, "category": False}
    if not isinstance(value, dict):
        _add_error(errors, "ai_generated", "AI flags must be an object")
        return None
    return {"description": bool(value.get("description", False)), "category": bool(value.get("category", False))}

def validate_task_payload(
    db: Session,
    data: Dict[str, Any],
    partial: bool = False,
    task_id: Optional[int] = None,
    owner_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Проверяет поля задачи и возвращает очищенные значения.
    partial=True: проверяются только переданные поля (update).
    Все нарушения собираются в один TaskValidationError.
    """
    now = now or utcnow()
    errors: List[Dict[str, str]] = []
    cleaned: Dict[str, Any] = {}

    def present(field: str) -> bool:
        return not partial or field in data

    for field in TEXT_FIELDS:
        if present(field):
            cleaned[field] = _clean_text(errors, field, data.get(field))

    if present("priority"):
        priority = data.get("priority")
        if priority is None and not partial:
            priority = "medium"
        if priority not in TASK_PRIORITIES:
            _add_error(errors, "priority", "Invalid priority level")
        cleaned["priority"] = priority

    if partial and "status" in data:
        if data["status"] not in TASK_STATUSES:
            _add_error(errors, "status", "Invalid status")
        cleaned["status"] = data["status"]

    if present("due_date"):
        due_date = data.get("due_date")
        if due_date is None:
            _add_error(errors, "due_date", "Due date is required")
        else:
            try:
                cleaned["due_date"] = parse_datetime(due_date)
            except ValueError:
                _add_error(errors, "due_date", "Invalid date format")

    if present("tags"):
        cleaned["tags"] = _clean_tags(errors, data.get("tags"))
    for field in ("estimated_time", "actual_time"):
        if present(field):
            cleaned[field] = _clean_time(errors, field, data.get(field))
    if present("attachments"):
        cleaned["attachments"] = _clean_attachments(errors, data.get("attachments"), now)
    if present("reminders"):
        cleaned["reminders"] = _clean_reminders(errors, data.get("reminders"))
    if present("dependencies"):
        cleaned["dependencies"] = _clean_dependencies(db, errors, data.get("dependencies"), task_id, owner_id)
    if present("ai_generated"):
        cleaned["ai_generated"] = _clean_ai_flags(errors, data.get("ai_generated"))

    if partial and ("user_id" in data or "user" in data):
        _add_error(errors, "user_id", "Task ownership cannot be changed")

    if errors:
        raise TaskValidationError.from_errors(errors)
    return cleaned


# ==== Доступ ====

def get_task(db: Session, task_id: int) -> Task:
    """
    Получить задачу по ID.
    """
    task = db.get(Task, task_id)
    if not task:
        raise TaskNotFound(f"Task {task_id} not found.")
    return task

def ensure_can_modify(task: Task, caller: User) -> None:
    """
    Владелец или админ; иначе AuthorizationError.
    """
    if caller.is_admin or task.user_id == caller.id:
        return
    raise AuthorizationError("Access denied. You can only access your own tasks.")

def get_task_for_caller(db: Session, task_id: int, caller: User) -> Task:
    task = get_task(db, task_id)
    ensure_can_modify(task, caller)
    return task


# ==== Жизненный цикл ====

def apply_status(task: Task, new_status: str, now: Optional[datetime] = None) -> None:
    """
    Переход в любой из четырёх статусов. completed_at ставится один раз,
    при первом входе в completed, и никогда не сбрасывается.
    """
    if new_status not in TASK_STATUSES:
        raise TaskValidationError.from_errors([{"field": "status", "message": "Invalid status"}])
    task.status = new_status
    if new_status == "completed" and task.completed_at is None:
        task.completed_at = now or utcnow()

def _commit(db: Session, task: Task, action: str) -> Task:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action} task: {e}")
        raise TaskValidationError(f"Database error while trying to {action} task.")
    return task

def create_task(db: Session, owner_id: int, data: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """
    Создать новую задачу. Статус всегда pending, completed_at пустой.
    """
    now = now or utcnow()
    cleaned = validate_task_payload(db, data, partial=False, owner_id=owner_id, now=now)

    task = Task(
        user_id=owner_id,
        status="pending",
        completed_at=None,
        created_at=now,
        updated_at=now,
        **cleaned,
    )
    db.add(task)
    _commit(db, task, "create")
    logger.info(f"Created task {task.id} for user {owner_id}")
    return task

def update_task(db: Session, task_id: int, caller: User, data: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """
    Обновить задачу: применяются только переданные поля, каждое проверяется
    так же, как при создании.
    """
    now = now or utcnow()
    task = get_task_for_caller(db, task_id, caller)
    cleaned = validate_task_payload(db, data, partial=True, task_id=task.id, owner_id=task.user_id, now=now)

    new_status = cleaned.pop("status", None)
    changed = []
    for field, value in cleaned.items():
        if getattr(task, field) != value:
            setattr(task, field, value)
            changed.append(field)
    if new_status is not None and new_status != task.status:
        apply_status(task, new_status, now)
        changed.append("status")
    task.updated_at = now

    _commit(db, task, "update")
    if changed:
        logger.info(f"Updated task {task.id} fields: {changed}")
    else:
        logger.info(f"Update called but no changes for task {task.id}")
    return task

def transition_status(db: Session, task_id: int, caller: User, new_status: str, now: Optional[datetime] = None) -> Task:
    """
    Перевести задачу в новый статус (граф переходов не ограничен).
    """
    now = now or utcnow()
    task = get_task_for_caller(db, task_id, caller)
    previous = task.status
    apply_status(task, new_status, now)
    task.updated_at = now
    _commit(db, task, "update status of")
    logger.info(f"Task {task.id} status {previous} -> {new_status}")
    return task

def complete_task(db: Session, task_id: int, caller: User, now: Optional[datetime] = None) -> Task:
    return transition_status(db, task_id, caller, "completed", now)

def cancel_task(db: Session, task_id: int, caller: User, now: Optional[datetime] = None) -> Task:
    return transition_status(db, task_id, caller, "cancelled", now)

def add_note(db: Session, task_id: int, caller: User, content: Any, now: Optional[datetime] = None) -> Task:
    """
    Добавить заметку в конец списка заметок задачи.
    """
    now = now or utcnow()
    task = get_task_for_caller(db, task_id, caller)
    if not isinstance(content, str) or not content.strip():
        raise TaskValidationError.from_errors([{"field": "content", "message": "Note content is required"}])
    if len(content) > NOTE_MAX_LENGTH:
        raise TaskValidationError.from_errors(
            [{"field": "content", "message": f"Note cannot exceed {NOTE_MAX_LENGTH} characters"}]
        )
    task.notes.append(TaskNote(content=content, author_id=caller.id, created_at=now))
    task.updated_at = now
    _commit(db, task, "add note to")
    logger.info(f"Added note to task {task.id} by user {caller.id}")
    return task

def add_reminder(
    db: Session,
    task_id: int,
    caller: User,
    time: Any,
    channel: str = "both",
    now: Optional[datetime] = None,
) -> Task:
    """
    Добавить напоминание (sent=False) к задаче.
    """
    task = get_task_for_caller(db, task_id, caller)
    errors: List[Dict[str, str]] = []
    reminder = _clean_reminder(errors, "reminder", {"time": time, "channel": channel})
    if errors:
        raise TaskValidationError.from_errors(errors)
    task.reminders = list(task.reminders or []) + [reminder]
    task.updated_at = now or utcnow()
    _commit(db, task, "add reminder to")
    logger.info(f"Added {channel} reminder to task {task.id}")
    return task

def delete_task(db: Session, task_id: int, caller: User) -> int:
    """
    Удалить задачу безвозвратно (hard delete, заметки удаляются вместе с ней).
    """
    task = get_task_for_caller(db, task_id, caller)
    db.delete(task)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete task {task_id}: {e}")
        raise TaskValidationError("Database error while deleting task.")
    logger.info(f"Deleted task {task_id} by user {caller.id}")
    return task_id
