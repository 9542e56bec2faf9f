#taskhub/schemas/ai.py
from pydantic import BaseModel, Field
from typing import List, Optional

from taskhub.schemas.task import TaskRead

class CategoryPredictionRequest(BaseModel):
    previous_categories: List[str] = Field(..., examples=[["Work", "Health"]])

class CategoryPredictionResponse(BaseModel):
    category: str
    source: str = Field(..., description="ai или fallback")
    message: Optional[str] = None

class DescriptionRequest(BaseModel):
    summary: str = Field(..., min_length=1, examples=["Renew car insurance"])

class DescriptionResponse(BaseModel):
    description: str
    source: str = Field(..., description="ai или fallback")
    message: Optional[str] = None

class AdminReport(BaseModel):
    critical_tasks: List[TaskRead]
    overdue_tasks: List[TaskRead]
