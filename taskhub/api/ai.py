#taskhub/api/ai.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskhub.schemas.ai import (
    CategoryPredictionRequest,
    CategoryPredictionResponse,
    DescriptionRequest,
    DescriptionResponse,
    AdminReport,
)
from taskhub.services.ai_service import TaskAIService, get_ai_service
from taskhub.crud.dashboard import critical_and_overdue
from taskhub.dependencies import get_db, get_current_active_user, get_current_admin
from taskhub.models.user import User as UserModel

logger = logging.getLogger("TaskHub.AIAPI")

router = APIRouter(prefix="/api/ai", tags=["AI"])

@router.post("/predict-category", response_model=CategoryPredictionResponse)
async def predict_category(
    data: CategoryPredictionRequest,
    current_user: UserModel = Depends(get_current_active_user),
    ai: TaskAIService = Depends(get_ai_service),
):
    """
    Предложить категорию по ранее использованным. Без AI: случайная из стандартных.
    """
    suggestion = await ai.suggest_category(data.previous_categories)
    return CategoryPredictionResponse(category=suggestion.value, source=suggestion.source, message=suggestion.message)

@router.post("/generate-description", response_model=DescriptionResponse)
async def generate_description(
    data: DescriptionRequest,
    current_user: UserModel = Depends(get_current_active_user),
    ai: TaskAIService = Depends(get_ai_service),
):
    """
    Развернуть краткое описание в полное. Без AI: шаблон.
    """
    suggestion = await ai.generate_description(data.summary)
    return DescriptionResponse(description=suggestion.value, source=suggestion.source, message=suggestion.message)

@router.get("/admin-report", response_model=AdminReport)
def admin_report(
    db: Session = Depends(get_db),
    admin: UserModel = Depends(get_current_admin),
):
    return critical_and_overdue(db)
