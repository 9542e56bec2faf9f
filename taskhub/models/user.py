#taskhub/models/user.py
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime
)
from sqlalchemy.orm import relationship
from taskhub.models.base import Base
from taskhub.core.timeutils import utcnow

USER_ROLES = ("user", "admin")

class User(Base):
    """
    User: аккаунт пользователя: роль user/admin, профиль, активность.
    password_hash пустой у аккаунтов с внешней (Google) идентичностью.
    """
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)
    username: str = Column(String(50), unique=True, nullable=False, index=True, doc="Уникальный username")
    email: str = Column(String(255), unique=True, nullable=False, index=True, doc="Email")
    password_hash: str = Column(String(255), nullable=True, doc="Хэш пароля (никогда не хранить сырой пароль!)")
    google_id: str = Column(String(255), unique=True, nullable=True, doc="Внешняя идентичность")
    role: str = Column(String(16), nullable=False, default="user", doc="user или admin")
    is_active: bool = Column(Boolean, default=True, nullable=False, doc="Аккаунт активен")
    first_name: str = Column(String(64), nullable=True)
    last_name: str = Column(String(64), nullable=True)
    avatar_url: str = Column(String(255), nullable=True, doc="URL аватара пользователя")
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow, doc="Дата создания")
    updated_at: datetime = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, doc="Дата обновления")
    last_login_at: datetime = Column(DateTime, nullable=True, doc="Последний вход")

    # --- Связи ---
    tasks = relationship("Task", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return (
            f"<User(id={self.id}, username='{self.username}', email='{self.email}', role={self.role})>"
        )
