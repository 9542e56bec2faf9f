#taskhub/crud/dashboard.py
"""
Сводки для дашборда пользователя и админки.

Каждое представление: отдельный запрос без общей транзакции: при
параллельной записи они могут отражать немного разные моменты времени.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskhub.models.task import Task, TASK_STATUSES, priority_rank_expr
from taskhub.models.user import User
from taskhub.core.timeutils import day_bounds, to_utc_naive, utcnow
import logging

logger = logging.getLogger("TaskHub.Dashboard")

UPCOMING_WINDOW_DAYS = 7
TREND_WINDOW_DAYS = 7
POPULAR_CATEGORIES_LIMIT = 5


def tasks_due_today(db: Session, owner_id: int, now: Optional[datetime] = None) -> List[Task]:
    start, end = day_bounds(now)
    return list(db.scalars(
        select(Task)
        .where(Task.user_id == owner_id, Task.due_date >= start, Task.due_date <= end)
        .order_by(priority_rank_expr().desc(), Task.due_date.asc(), Task.id.asc())
    ).all())


def overdue_tasks(db: Session, owner_id: int, now: Optional[datetime] = None) -> List[Task]:
    now = to_utc_naive(now) if now else utcnow()
    return list(db.scalars(
        select(Task)
        .where(Task.user_id == owner_id, Task.status != "completed", Task.due_date < now)
        .order_by(Task.due_date.asc(), Task.id.asc())
    ).all())


def upcoming_tasks(db: Session, owner_id: int, now: Optional[datetime] = None, days: int = UPCOMING_WINDOW_DAYS) -> List[Task]:
    now = to_utc_naive(now) if now else utcnow()
    return list(db.scalars(
        select(Task)
        .where(
            Task.user_id == owner_id,
            Task.status != "completed",
            Task.due_date >= now,
            Task.due_date <= now + timedelta(days=days),
        )
        .order_by(Task.due_date.asc(), Task.id.asc())
    ).all())


def completed_trend(db: Session, owner_id: int, now: Optional[datetime] = None, days: int = TREND_WINDOW_DAYS) -> List[Dict[str, Any]]:
    """
    Число завершённых задач по дням (YYYY-MM-DD) за последние days дней.
    Дни без завершений не возвращаются.
    """
    now = to_utc_naive(now) if now else utcnow()
    day = func.date(Task.completed_at)
    rows = db.execute(
        select(day.label("day"), func.count(Task.id).label("count"))
        .where(
            Task.user_id == owner_id,
            Task.status == "completed",
            Task.completed_at >= now - timedelta(days=days),
        )
        .group_by(day)
        .order_by(day.asc())
    ).all()
    return [{"date": str(row.day), "count": row.count} for row in rows]


def popular_categories(db: Session, owner_id: int, limit: int = POPULAR_CATEGORIES_LIMIT) -> List[Dict[str, Any]]:
    count = func.count(Task.id)
    rows = db.execute(
        select(Task.category, count.label("count"))
        .where(Task.user_id == owner_id)
        .group_by(Task.category)
        .order_by(count.desc(), Task.category.asc())
        .limit(limit)
    ).all()
    return [{"category": row.category, "count": row.count} for row in rows]


def status_counts(db: Session, owner_id: Optional[int] = None) -> Dict[str, int]:
    """Количество задач по статусам; отсутствующие статусы: 0."""
    query = select(Task.status, func.count(Task.id)).group_by(Task.status)
    if owner_id is not None:
        query = query.where(Task.user_id == owner_id)
    counts = {status: 0 for status in TASK_STATUSES}
    for status, count in db.execute(query).all():
        counts[status] = count
    return counts


def summarize(db: Session, owner_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Сводка дашборда по задачам владельца.
    """
    now = to_utc_naive(now) if now else utcnow()
    summary = {
        "tasks_due_today": tasks_due_today(db, owner_id, now),
        "overdue_tasks": overdue_tasks(db, owner_id, now),
        "upcoming_tasks": upcoming_tasks(db, owner_id, now),
        "completed_trend": completed_trend(db, owner_id, now),
        "popular_categories": popular_categories(db, owner_id),
        "status_counts": status_counts(db, owner_id),
    }
    logger.info(
        f"Dashboard for user {owner_id}: {len(summary['tasks_due_today'])} due today, "
        f"{len(summary['overdue_tasks'])} overdue, {len(summary['upcoming_tasks'])} upcoming"
    )
    return summary


# ==== Админские сводки ====

def admin_overview(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = to_utc_naive(now) if now else utcnow()
    return {
        "user_count": db.scalar(select(func.count(User.id))) or 0,
        "active_users": db.scalar(select(func.count(User.id)).where(User.is_active.is_(True))) or 0,
        "task_count": db.scalar(select(func.count(Task.id))) or 0,
        "completed_tasks": db.scalar(select(func.count(Task.id)).where(Task.status == "completed")) or 0,
        "overdue_tasks": db.scalar(
            select(func.count(Task.id)).where(Task.status != "completed", Task.due_date < now)
        ) or 0,
    }


def category_report(db: Session) -> List[Dict[str, Any]]:
    """Количество задач по категориям среди всех пользователей."""
    count = func.count(Task.id)
    rows = db.execute(
        select(Task.category, count.label("count")).group_by(Task.category).order_by(count.desc(), Task.category.asc())
    ).all()
    return [{"category": row.category, "count": row.count} for row in rows]


def critical_and_overdue(db: Session, now: Optional[datetime] = None) -> Dict[str, List[Task]]:
    """Открытые критичные и просроченные задачи всех пользователей."""
    now = to_utc_naive(now) if now else utcnow()
    critical = db.scalars(
        select(Task)
        .where(Task.priority == "critical", Task.status != "completed")
        .order_by(Task.due_date.asc(), Task.id.asc())
    ).all()
    overdue = db.scalars(
        select(Task)
        .where(Task.status != "completed", Task.due_date < now)
        .order_by(Task.due_date.asc(), Task.id.asc())
    ).all()
    return {"critical_tasks": list(critical), "overdue_tasks": list(overdue)}
