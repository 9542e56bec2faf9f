#taskhub/schemas/user.py
from pydantic import BaseModel, Field, EmailStr, constr
from typing import Optional
from datetime import datetime

class UserBase(BaseModel):
    """
    UserBase: базовая схема пользователя.
    """
    username: constr(min_length=3, max_length=50) = Field(..., examples=["john_doe"], description="Уникальный username")
    email: EmailStr = Field(..., examples=["john.doe@example.com"], description="Email пользователя")
    first_name: Optional[str] = Field(None, examples=["John"])
    last_name: Optional[str] = Field(None, examples=["Doe"])

class UserCreate(UserBase):
    """
    UserCreate: регистрация (пароль обязателен).
    role/admin_code учитываются только для админов или с правильным кодом.
    """
    password: constr(min_length=8) = Field(..., examples=["StrongPassw0rd!"], description="Пароль пользователя")
    role: Optional[str] = Field(None, examples=["user"])
    admin_code: Optional[str] = Field(None, description="Код для регистрации администратора")

class AdminUserCreate(UserBase):
    password: constr(min_length=8)
    role: str = "user"

class UserUpdate(BaseModel):
    """
    UserUpdate: обновление профиля (все поля опциональны).
    """
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    password: Optional[constr(min_length=8)] = None

class RoleUpdate(BaseModel):
    role: str = Field(..., examples=["admin"])

class UserRead(BaseModel):
    """
    UserRead: пользователь в ответе (без хэша пароля).
    """
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True
