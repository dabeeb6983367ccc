from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    user_id: str = Field(min_length=1, description="Opaque external user identifier")
    display_name: str = Field(default="Unknown", description="Name shown for the user")
    message: str = Field(description="Message text, either a free command or a question for the agent")
