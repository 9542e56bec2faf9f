#taskhub/schemas/task.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime


class TimeEstimate(BaseModel):
    """
    TimeEstimate: оценка/факт времени (часы 0-24, минуты 0-59).
    """
    hours: Optional[int] = Field(None, examples=[2], description="Часы (0-24)")
    minutes: Optional[int] = Field(None, examples=[30], description="Минуты (0-59)")


class AttachmentMeta(BaseModel):
    """
    AttachmentMeta: метаданные вложения (сам файл здесь не хранится).
    """
    filename: str = Field(..., examples=["a1b2c3.pdf"], description="Имя файла в хранилище")
    original_name: str = Field(..., examples=["report.pdf"], description="Исходное имя файла")
    mimetype: str = Field(..., examples=["application/pdf"])
    size: int = Field(..., examples=[102400], description="Размер в байтах")
    url: str = Field(..., examples=["https://cdn.example.com/files/a1b2c3.pdf"])
    uploaded_at: Optional[datetime] = None


class ReminderCreate(BaseModel):
    time: datetime = Field(..., description="Когда напомнить")
    channel: str = Field("both", examples=["email"], description="email, push или both")


class ReminderRead(BaseModel):
    time: datetime
    channel: str
    sent: bool = False


class DependencyRef(BaseModel):
    task_id: int = Field(..., examples=[42], description="ID связанной задачи")
    kind: str = Field("related", examples=["blocks"], description="blocks, blocked-by или related")


class AIGeneratedFlags(BaseModel):
    description: bool = False
    category: bool = False


class TaskCreate(BaseModel):
    """
    TaskCreate: создание задачи. Обязательность и длины проверяются в crud,
    чтобы все нарушения вернулись одним списком.
    """
    title: Optional[str] = Field(None, examples=["Prepare quarterly report"], description="Название (до 200)")
    description: Optional[str] = Field(None, description="Описание (до 2000)")
    summary: Optional[str] = Field(None, description="Краткое описание (до 500)")
    category: Optional[str] = Field(None, examples=["Work"], description="Категория (до 100)")
    priority: Optional[str] = Field(None, examples=["high"], description="low, medium, high, critical")
    due_date: Optional[str] = Field(None, examples=["2026-10-20T09:00:00Z"], description="Дедлайн (ISO 8601)")
    tags: Optional[List[str]] = None
    attachments: Optional[List[AttachmentMeta]] = None
    estimated_time: Optional[TimeEstimate] = None
    actual_time: Optional[TimeEstimate] = None
    reminders: Optional[List[ReminderCreate]] = None
    dependencies: Optional[List[DependencyRef]] = None
    ai_generated: Optional[AIGeneratedFlags] = None


class TaskUpdate(BaseModel):
    """
    TaskUpdate: частичное обновление (применяются только переданные поля).
    """
    title: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    tags: Optional[List[str]] = None
    attachments: Optional[List[AttachmentMeta]] = None
    estimated_time: Optional[TimeEstimate] = None
    actual_time: Optional[TimeEstimate] = None
    reminders: Optional[List[ReminderCreate]] = None
    dependencies: Optional[List[DependencyRef]] = None
    ai_generated: Optional[AIGeneratedFlags] = None
    # владельца менять нельзя; поле принимается, чтобы вернуть понятную ошибку
    user_id: Optional[int] = None


class StatusUpdate(BaseModel):
    status: str = Field(..., examples=["in-progress"])


class NoteCreate(BaseModel):
    content: str = Field("", description="Текст заметки (до 1000)")


class NoteRead(BaseModel):
    id: int
    content: str
    author_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class TaskRead(BaseModel):
    """
    TaskRead: полная схема задачи для ответа, вместе с производными флагами.
    """
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    summary: Optional[str] = None
    category: str
    status: str
    priority: str
    due_date: datetime
    completed_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    attachments: List[AttachmentMeta] = Field(default_factory=list)
    estimated_time: Optional[TimeEstimate] = None
    actual_time: Optional[TimeEstimate] = None
    reminders: List[ReminderRead] = Field(default_factory=list)
    dependencies: List[DependencyRef] = Field(default_factory=list)
    ai_generated: AIGeneratedFlags = Field(default_factory=AIGeneratedFlags)
    notes: List[NoteRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    is_overdue: bool
    is_due_today: bool
    is_due_soon: bool
    completion_percentage: int

    class Config:
        from_attributes = True


class TaskPage(BaseModel):
    """
    TaskPage: страница результатов списка задач.
    """
    results: List[TaskRead]
    total_count: int = Field(..., description="Всего задач под фильтром")
    page: int
    limit: int
    pages: int = Field(..., description="ceil(total_count / limit)")


class DayCount(BaseModel):
    date: str = Field(..., examples=["2026-10-18"])
    count: int


class CategoryCount(BaseModel):
    category: str
    count: int


class DashboardSummary(BaseModel):
    """
    DashboardSummary: сводка по задачам пользователя.
    """
    tasks_due_today: List[TaskRead]
    overdue_tasks: List[TaskRead]
    upcoming_tasks: List[TaskRead]
    completed_trend: List[DayCount]
    popular_categories: List[CategoryCount]
    status_counts: Dict[str, int]
