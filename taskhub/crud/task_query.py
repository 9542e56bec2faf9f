#taskhub/crud/task_query.py
"""
Список задач пользователя: разбор параметров запроса, фильтры, сортировка,
offset-пагинация.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from taskhub.models.task import (
    Task,
    TASK_STATUSES,
    TASK_PRIORITIES,
    priority_rank_expr,
    status_rank_expr,
)
from taskhub.core.exceptions import ValidationError
from taskhub.core.timeutils import parse_datetime
import logging

logger = logging.getLogger("TaskHub.TaskQuery")

SORT_FIELDS = ("title", "due_date", "priority", "status", "created_at")
SORT_ORDERS = ("asc", "desc")
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# offset уходит в БД как signed 64-bit
MAX_OFFSET = 2 ** 63 - 1

RECOGNIZED_KEYS = (
    "status",
    "priority",
    "category",
    "search",
    "due_date_from",
    "due_date_to",
    "sort_by",
    "sort_order",
    "page",
    "limit",
)


@dataclass
class TaskCriteria:
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    due_date_from: Optional[datetime] = None
    due_date_to: Optional[datetime] = None
    sort_by: str = "due_date"
    sort_order: str = "asc"
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class TaskPage:
    items: List[Task]
    total: int
    page: int
    limit: int
    pages: int


def _parse_int(errors, raw: Mapping[str, Any], key: str, default: int, low: int, high: Optional[int] = None) -> int:
    value = raw.get(key)
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors.append({"field": key, "message": f"{key} must be an integer"})
        return default
    if number < low or (high is not None and number > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        errors.append({"field": key, "message": f"{key} must be {bound}"})
        return default
    return number


def _parse_choice(errors, raw: Mapping[str, Any], key: str, choices, default=None):
    value = raw.get(key)
    if value is None or value == "":
        return default
    if value not in choices:
        errors.append({"field": key, "message": f"{key} must be one of: {', '.join(choices)}"})
        return default
    return value


def parse_task_criteria(raw: Optional[Mapping[str, Any]] = None) -> TaskCriteria:
    """
    Превращает параметры запроса в TaskCriteria.
    Неизвестные ключи и невалидные значения: ValidationError до любого запроса к БД.
    """
    raw = raw or {}
    errors: List[Dict[str, str]] = []

    for key in raw:
        if key not in RECOGNIZED_KEYS:
            errors.append({"field": key, "message": "Unrecognized filter parameter"})

    criteria = TaskCriteria(
        status=_parse_choice(errors, raw, "status", TASK_STATUSES),
        priority=_parse_choice(errors, raw, "priority", TASK_PRIORITIES),
        category=raw.get("category") or None,
        search=(raw.get("search") or "").strip() or None,
        sort_by=_parse_choice(errors, raw, "sort_by", SORT_FIELDS, "due_date"),
        sort_order=_parse_choice(errors, raw, "sort_order", SORT_ORDERS, "asc"),
        page=_parse_int(errors, raw, "page", 1, 1),
        limit=_parse_int(errors, raw, "limit", DEFAULT_LIMIT, 1, MAX_LIMIT),
    )
    if criteria.offset > MAX_OFFSET:
        errors.append({"field": "page", "message": "page is too large"})

    for key, end_of_day in (("due_date_from", False), ("due_date_to", True)):
        value = raw.get(key)
        if value is None or value == "":
            continue
        try:
            setattr(criteria, key, parse_datetime(value, end_of_day=end_of_day))
        except ValueError:
            errors.append({"field": key, "message": "Invalid date format"})

    if errors:
        raise ValidationError.from_errors(errors)
    return criteria


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_task_filters(owner_id: int, criteria: TaskCriteria) -> list:
    """
    Список условий WHERE (объединяются через AND). Владелец: всегда первым.
    """
    conditions = [Task.user_id == owner_id]
    if criteria.status:
        conditions.append(Task.status == criteria.status)
    if criteria.priority:
        conditions.append(Task.priority == criteria.priority)
    if criteria.category:
        conditions.append(Task.category == criteria.category)
    if criteria.due_date_from:
        conditions.append(Task.due_date >= criteria.due_date_from)
    if criteria.due_date_to:
        conditions.append(Task.due_date <= criteria.due_date_to)
    if criteria.search:
        pattern = f"%{_escape_like(criteria.search)}%"
        conditions.append(or_(
            Task.title.ilike(pattern, escape="\\"),
            Task.description.ilike(pattern, escape="\\"),
            Task.category.ilike(pattern, escape="\\"),
        ))
    return conditions


def build_task_order(criteria: TaskCriteria) -> list:
    if criteria.sort_by == "priority":
        column = priority_rank_expr()
    elif criteria.sort_by == "status":
        column = status_rank_expr()
    else:
        column = getattr(Task, criteria.sort_by)
    ordered = column.desc() if criteria.sort_order == "desc" else column.asc()
    # id как последний ключ: страницы не "плывут" при равных значениях
    return [ordered, Task.id.asc()]


def list_tasks(db: Session, owner_id: int, criteria: Optional[TaskCriteria] = None) -> TaskPage:
    """
    Задачи владельца по критериям + общее количество и число страниц.
    """
    criteria = criteria or TaskCriteria()
    conditions = build_task_filters(owner_id, criteria)

    total = db.scalar(select(func.count(Task.id)).where(*conditions)) or 0
    items = db.scalars(
        select(Task)
        .where(*conditions)
        .order_by(*build_task_order(criteria))
        .offset(criteria.offset)
        .limit(criteria.limit)
    ).all()

    pages = math.ceil(total / criteria.limit) if total else 0
    logger.debug(f"Listed {len(items)}/{total} tasks for user {owner_id} (page {criteria.page})")
    return TaskPage(items=list(items), total=total, page=criteria.page, limit=criteria.limit, pages=pages)


def list_owner_tasks_for_export(db: Session, owner_id: int) -> List[Task]:
    """Все задачи владельца по возрастанию дедлайна."""
    return list(db.scalars(
        select(Task).where(Task.user_id == owner_id).order_by(Task.due_date.asc(), Task.id.asc())
    ).all())


def list_all_tasks(db: Session, user_id: Optional[int] = None, status: Optional[str] = None) -> List[Task]:
    """
    Админский просмотр задач всех пользователей с опциональными фильтрами.
    """
    if status is not None and status not in TASK_STATUSES:
        raise ValidationError.from_errors([{"field": "status", "message": "Invalid status"}])
    query = select(Task)
    if user_id is not None:
        query = query.where(Task.user_id == user_id)
    if status is not None:
        query = query.where(Task.status == status)
    return list(db.scalars(query.order_by(Task.due_date.asc(), Task.id.asc())).all())
