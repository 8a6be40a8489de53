from pydantic import BaseModel


class InitiateChat(BaseModel):
    participant_id: int | None = None


class SendMessage(BaseModel):
    chat_id: int | None = None
    content: str | None = None
