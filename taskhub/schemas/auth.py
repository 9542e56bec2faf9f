#taskhub/schemas/auth.py
from pydantic import BaseModel, Field

from taskhub.schemas.user import UserRead

class LoginResponse(BaseModel):
    """
    LoginResponse: ответ на успешный логин/регистрацию.
    """
    access_token: str = Field(..., examples=["eyJhbGciOi..."], description="JWT access token")
    token_type: str = Field("bearer", description="Тип токена")
    expires_in: int = Field(..., examples=[86400], description="Время жизни access токена (секунды)")
    user: UserRead
