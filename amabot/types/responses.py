from typing import Any, Dict

from pydantic import BaseModel, Field


class ChatResponse(BaseModel):
    reply: str = Field(description="Reply to show to the user")


class HealthResponse(BaseModel):
    status: str
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    available_providers: int = 0
    total_providers: int = 0
