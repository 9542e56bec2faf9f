#taskhub/schemas/response.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

class FieldError(BaseModel):
    field: str
    message: str

class ErrorResponse(BaseModel):
    """
    ErrorResponse: стандартная структура ошибки (detail + нарушения по полям).
    """
    detail: str = Field(..., examples=["title: Task title is required"])
    errors: List[FieldError] = Field(default_factory=list)

class SuccessResponse(BaseModel):
    """
    SuccessResponse: универсальный ответ с результатом выполнения операции.
    """
    result: Any = Field(..., description="Результат запроса (может быть любым объектом)")
    detail: Optional[str] = Field(None, examples=["Operation successful"], description="Дополнительная информация")

class MessageResponse(BaseModel):
    message: str

class AdminOverview(BaseModel):
    user_count: int
    active_users: int
    task_count: int
    completed_tasks: int
    overdue_tasks: int

class CategoryStat(BaseModel):
    category: str
    count: int

StatusStats = Dict[str, int]

class AdminDashboard(BaseModel):
    """
    AdminDashboard: сводка по системе для администратора.
    """
    overview: AdminOverview
    status_counts: StatusStats
    categories: List[CategoryStat]
    failed_actions: int = Field(..., description="Неуспешных действий за последние 7 дней")
