from fastapi import APIRouter, Depends

from ..logging_config import bind_request_context
from ..services import BotService
from ..types import ChatRequest, ChatResponse
from .deps import get_bot_service

router = APIRouter()


@router.post("/chat")
async def chat_endpoint(
    request: ChatRequest,
    service: BotService = Depends(get_bot_service),
) -> ChatResponse:
    """Answer one chat message for a user.

    Failures are turned into a friendly reply by the bot service, so this
    endpoint always returns 200 once the service is up.
    """
    bind_request_context(user_id=request.user_id)
    reply = await service.handle_message(request.user_id, request.display_name, request.message)
    return ChatResponse(reply=reply)
