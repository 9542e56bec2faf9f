from .user import User
from .task import Task, TaskNote
from .audit import AuditLog
