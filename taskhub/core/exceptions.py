# taskhub/core/exceptions.py
from typing import Any, Dict, List, Optional


class BaseAppException(Exception):
    """Базовый класс для всех кастомных исключений приложения."""
    def __init__(self, message: str = "App exception"):
        super().__init__(message)
        self.message = message

# ==== Валидация ====

class ValidationError(BaseAppException):
    """
    Ошибка валидации входных данных.
    errors: список нарушений вида {"field": ..., "message": ...}.
    """
    def __init__(self, message: str = "Validation error", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_errors(cls, errors: List[Dict[str, Any]]) -> "ValidationError":
        message = "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Validation error"
        return cls(message, errors=errors)

class TaskValidationError(ValidationError):
    """Ошибка валидации задачи."""
    def __init__(self, message: str = "Task validation error", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, errors=errors)

class UserValidationError(ValidationError):
    """Ошибка валидации пользователя."""
    def __init__(self, message: str = "User validation error", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, errors=errors)

# ==== NotFound ====

class NotFoundError(BaseAppException):
    """Ошибка отсутствия ресурса."""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)

class TaskNotFound(NotFoundError):
    """Ошибка: задача не найдена."""
    def __init__(self, message: str = "Task not found"):
        super().__init__(message)

class UserNotFound(NotFoundError):
    """Ошибка: пользователь не найден."""
    def __init__(self, message: str = "User not found"):
        super().__init__(message)

# ==== Авторизация ====

class AuthenticationError(BaseAppException):
    """Нет или невалидна личность вызывающего (401)."""
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)

class AuthorizationError(BaseAppException):
    """Вызывающий не владелец ресурса и не админ (403)."""
    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)

# ==== Внешние сервисы ====

class UpstreamError(BaseAppException):
    """Сбой внешнего коллаборатора (экспорт, AI)."""
    def __init__(self, message: str = "Upstream service error"):
        super().__init__(message)
