from .requests import ChatRequest
from .responses import ChatResponse, HealthResponse

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "HealthResponse",
]
