from .bot import GENERIC_ERROR_MESSAGE, BotService
from .commands import match_free_command

__all__ = ["GENERIC_ERROR_MESSAGE", "BotService", "match_free_command"]
