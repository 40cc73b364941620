# zusplus/schemas/ai.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecommendationsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    retirement_data: Dict[str, Any] = Field(..., alias="retirementData")


class RecommendationsOut(BaseModel):
    recommendations: List[str]


class ChatIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=2000)
    dashboard_context: Optional[Dict[str, Any]] = Field(default=None, alias="dashboardContext")


class ChatOut(BaseModel):
    response: str
