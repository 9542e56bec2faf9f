#taskhub/models/task.py
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, JSON, Text, Index, case
)
from sqlalchemy.orm import relationship
from taskhub.models.base import Base
from taskhub.core.timeutils import utcnow, day_bounds

TASK_STATUSES = ("pending", "in-progress", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "critical")
REMINDER_CHANNELS = ("email", "push", "both")
DEPENDENCY_KINDS = ("blocks", "blocked-by", "related")

# Семантический порядок для сортировки (а не алфавитный)
PRIORITY_RANK = {name: rank for rank, name in enumerate(TASK_PRIORITIES, start=1)}
STATUS_RANK = {name: rank for rank, name in enumerate(TASK_STATUSES, start=1)}

DUE_SOON_WINDOW = timedelta(days=3)


class Task(Base):
    """
    Task: личная задача пользователя: статус, приоритет, дедлайн, заметки,
    напоминания, зависимости и AI-пометки.
    """
    __tablename__ = "tasks"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, doc="Владелец")
    title: str = Column(String(200), nullable=False, doc="Название")
    description: str = Column(String(2000), nullable=True, doc="Описание")
    summary: str = Column(String(500), nullable=True, doc="Краткое описание")
    category: str = Column(String(100), nullable=False, doc="Категория")
    status: str = Column(String(24), nullable=False, default="pending", doc="pending, in-progress, completed, cancelled")
    priority: str = Column(String(16), nullable=False, default="medium", doc="low, medium, high, critical")
    due_date: datetime = Column(DateTime, nullable=False, doc="Дедлайн (UTC)")
    completed_at: datetime = Column(DateTime, nullable=True, doc="Момент первого перехода в completed")
    tags: list = Column(JSON, nullable=False, default=lambda: [], doc="Теги")
    attachments: list = Column(JSON, nullable=False, default=lambda: [], doc="Метаданные вложений")
    estimated_time: dict = Column(JSON, nullable=True, doc="{hours, minutes}")
    actual_time: dict = Column(JSON, nullable=True, doc="{hours, minutes}")
    reminders: list = Column(JSON, nullable=False, default=lambda: [], doc="[{time, channel, sent}]")
    dependencies: list = Column(JSON, nullable=False, default=lambda: [], doc="[{task_id, kind}]")
    ai_generated: dict = Column(
        JSON, nullable=False, default=lambda: {"description": False, "category": False},
        doc="Были ли описание/категория предложены AI",
    )
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow, doc="Дата создания")
    updated_at: datetime = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, doc="Дата изменения")

    owner = relationship("User", back_populates="tasks")
    notes = relationship(
        "TaskNote",
        back_populates="task",
        order_by="TaskNote.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_tasks_user_status", "user_id", "status"),
        Index("ix_tasks_user_due_date", "user_id", "due_date"),
        Index("ix_tasks_user_category", "user_id", "category"),
        Index("ix_tasks_status_due_date", "status", "due_date"),
        Index("ix_tasks_priority_due_date", "priority", "due_date"),
    )

    # --- Производные предикаты (не хранятся) ---

    def overdue_at(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.status != "completed" and self.due_date < now

    def due_today_at(self, now: Optional[datetime] = None) -> bool:
        start, end = day_bounds(now)
        return start <= self.due_date <= end

    def due_soon_at(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        delta = self.due_date - now
        return self.status != "completed" and timedelta(0) <= delta <= DUE_SOON_WINDOW

    @property
    def is_overdue(self) -> bool:
        return self.overdue_at()

    @property
    def is_due_today(self) -> bool:
        return self.due_today_at()

    @property
    def is_due_soon(self) -> bool:
        return self.due_soon_at()

    @property
    def completion_percentage(self) -> int:
        if self.status == "completed":
            return 100
        if self.status == "in-progress":
            return 50
        return 0

    def __repr__(self):
        return (
            f"<Task(id={self.id}, title='{self.title}', status={self.status}, "
            f"user_id={self.user_id}, priority={self.priority}, due_date={self.due_date})>"
        )


class TaskNote(Base):
    """
    TaskNote: заметка к задаче. Только добавление, порядок по id.
    """
    __tablename__ = "task_notes"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    task_id: int = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id: int = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, doc="Автор")
    content: str = Column(Text, nullable=False, doc="Текст (до 1000 символов)")
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow)

    task = relationship("Task", back_populates="notes")

    def __repr__(self):
        return f"<TaskNote(id={self.id}, task_id={self.task_id}, author_id={self.author_id})>"


def priority_rank_expr():
    """SQL-выражение ранга приоритета для ORDER BY."""
    return case(PRIORITY_RANK, value=Task.priority, else_=0)


def status_rank_expr():
    """SQL-выражение ранга статуса для ORDER BY."""
    return case(STATUS_RANK, value=Task.status, else_=0)
